"""Image Tag Reconciler (ITR).

Keeps the image tag in a GitOps manifest pointed at the newest release:
 - lists the image's tags from the registry (Docker Hub API, then registry v2)
 - picks the highest MAJOR.MINOR version
 - rewrites only the tag in the manifest, byte-for-byte otherwise
 - falls back to an operator-chosen tag when the registry gives no answer

Committing the change is left to the surrounding pipeline.
"""
