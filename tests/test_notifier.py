import pytest
import requests

from missmon.notify import LogNotifier, NotifyError, TelegramNotifier, format_alert


def test_alert_text_names_system_and_difference():
    text = format_alert(6)
    assert text == (
        "\U0001F6A8 Kujira Price tracker monitor alert!\n"
        " You are missing too many blocks. Miss counter exceeded: 6"
    )


def test_telegram_posts_message_to_chat(fake_session, fake_response):
    session = fake_session(response=fake_response(payload={"ok": True, "result": {}}))
    n = TelegramNotifier("123", "tok", "-100", timeout_s=3.0, session=session)

    n.send("hello")

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://api.telegram.org/bot123:tok/sendMessage"
    assert kwargs["data"] == {"chat_id": "-100", "text": "hello"}
    assert kwargs["timeout"] == 3.0


def test_transport_error_is_raised_without_leaking_token(fake_session):
    session = fake_session(exc=requests.ConnectionError("https://api.telegram.org/bot123:tok/sendMessage unreachable"))
    n = TelegramNotifier("123", "tok", "-100", session=session)
    with pytest.raises(NotifyError) as ei:
        n.send("hello")
    assert "tok" not in str(ei.value)
    assert "ConnectionError" in str(ei.value)


def test_rejected_message_is_raised(fake_session, fake_response):
    session = fake_session(response=fake_response(
        status_code=400, reason="Bad Request",
        payload={"ok": False, "description": "Bad Request: chat not found"},
    ))
    n = TelegramNotifier("123", "tok", "-100", session=session)
    with pytest.raises(NotifyError, match="chat not found"):
        n.send("hello")


def test_ok_false_with_200_is_still_a_failure(fake_session, fake_response):
    session = fake_session(response=fake_response(payload={"ok": False}))
    n = TelegramNotifier("123", "tok", "-100", session=session)
    with pytest.raises(NotifyError):
        n.send("hello")


def test_non_json_reply_is_a_failure(fake_session, fake_response):
    session = fake_session(response=fake_response(status_code=502, reason="Bad Gateway", invalid_json=True))
    n = TelegramNotifier("123", "tok", "-100", session=session)
    with pytest.raises(NotifyError, match="Bad Gateway"):
        n.send("hello")


def test_log_notifier_records_alert(logger):
    LogNotifier(logger).send(format_alert(9))
    assert logger.of("alert_dry_run") == [{"text": format_alert(9)}]


@pytest.mark.parametrize("payload", [None, [], "Bad Gateway", 42])
def test_non_object_json_reply_is_a_failure(fake_session, fake_response, payload):
    session = fake_session(response=fake_response(status_code=502, reason="Bad Gateway", payload=payload))
    n = TelegramNotifier("123", "tok", "-100", session=session)
    with pytest.raises(NotifyError, match="Bad Gateway"):
        n.send("hello")


def test_garbled_telegram_reply_does_not_stop_the_loop(make_monitor, stop_after, logger, fake_session, fake_response):
    session = fake_session(response=fake_response(status_code=502, reason="Bad Gateway", payload=None))
    notifier = TelegramNotifier("123", "tok", "-100", session=session)
    mon = make_monitor(values=[100, 106, 107], notifier=notifier)

    assert mon.run(stop_evt=stop_after(2)) == 0

    assert len(session.calls) == 1
    assert len(logger.of("notify_error")) == 1
    assert mon.state.last_sampled_count == 107
    assert logger.names()[-1] == "stopped"
