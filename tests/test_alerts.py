from itr import alerts
from itr.models import PatchStatus, PatchSummary, UpdateOutcome, VersionSource
from itr.settings import Settings


def _outcome(status=PatchStatus.UPDATED, source=VersionSource.REGISTRY):
    return UpdateOutcome(
        repository="nginx",
        manifest_path="k8s/deployment.yaml",
        selected_version="1.22",
        source=source,
        fallback_reason="Registry unavailable for nginx" if source is VersionSource.FALLBACK else None,
        patch=PatchSummary(
            status=status,
            old_version="1.21" if status is not PatchStatus.NOT_FOUND else None,
            new_version="1.22" if status is not PatchStatus.NOT_FOUND else None,
        ),
        started_at="2026-01-01T00:00:00Z",
        finished_at="2026-01-01T00:00:01Z",
    )


def _smtp_settings(**kw):
    base = dict(
        enable_email=True,
        smtp_user="bot",
        smtp_password="secret",
        email_from="bot@example.com",
        email_to="ops@example.com",
    )
    base.update(kw)
    return Settings(**base)


def test_quiet_runs_produce_no_message():
    assert alerts.outcome_message(_outcome(PatchStatus.UNCHANGED)) is None
    assert alerts.outcome_message(_outcome(PatchStatus.NOT_FOUND)) is None


def test_update_and_fallback_messages():
    subject, body = alerts.outcome_message(_outcome())
    assert subject == "UPDATED: nginx 1.21 -> 1.22"
    assert "Selected: 1.22 (registry)" in body

    subject, body = alerts.outcome_message(_outcome(PatchStatus.UNCHANGED, VersionSource.FALLBACK))
    assert subject == "FALLBACK: nginx pinned to 1.22"
    assert "Fallback reason: Registry unavailable" in body


def test_send_email_disabled_or_incomplete():
    assert alerts.send_email("s", "b", Settings()) is False
    assert alerts.send_email("s", "b", _smtp_settings(email_to=None)) is False


def test_notifier_sends_through_smtp(monkeypatch):
    sent = []

    class _FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host, self.port = host, port

        def starttls(self):
            pass

        def login(self, user, password):
            sent.append(("login", user))

        def sendmail(self, from_addr, to_addrs, msg):
            sent.append(("sendmail", from_addr, to_addrs, msg))

        def quit(self):
            pass

    monkeypatch.setattr(alerts.smtplib, "SMTP", _FakeSMTP)

    notifier = alerts.EmailNotifier(_smtp_settings())
    assert notifier(_outcome()) is True
    assert notifier(_outcome(PatchStatus.UNCHANGED)) is False

    assert sent[0] == ("login", "bot")
    assert sent[1][1:3] == ("bot@example.com", ["ops@example.com"])
    assert "UPDATED: nginx 1.21 -> 1.22" in sent[1][3]
