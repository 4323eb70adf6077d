import pytest

from studybuddy import send_reminders
from studybuddy.composer import ReminderComposer
from studybuddy.conftest import CanvasStub, TextbeltStub, due_in
from studybuddy.reminder_system import ReminderSystem
from studybuddy.send_reminders import main, parse_args

PHONE = "+14085551234"


@pytest.fixture
def use_system(monkeypatch):
    monkeypatch.setattr(send_reminders, "configure_logging", lambda **kwargs: None)

    def _use(system):
        monkeypatch.setattr(ReminderSystem, "from_environment", lambda: system)
        return system

    return _use


@pytest.fixture
def canvas(two_courses):
    return CanvasStub(
        two_courses,
        {1: [{"id": 11, "name": "Heap lab", "due_at": due_in(2)}]},
        bad_keys={"expired"},
    )


def test_phone_requires_api_key():
    with pytest.raises(SystemExit):
        parse_args(["--phone", PHONE])


def test_all_and_phone_are_exclusive():
    with pytest.raises(SystemExit):
        parse_args(["--all", "--phone", PHONE, "--api-key", "token"])


def test_single_reminder_arguments():
    args = parse_args(["--phone", PHONE, "--api-key", "token", "--days-ahead", "3", "--verbose"])
    assert args.phone == PHONE
    assert args.days_ahead == 3
    assert args.verbose
    assert not args.all


def test_delivered_reminder_exits_zero(use_system, make_system, canvas):
    textbelt = TextbeltStub()
    use_system(make_system(canvas, textbelt))

    assert main(["--phone", PHONE, "--api-key", "token"]) == 0
    assert textbelt.sent[0]["phone"] == PHONE


def test_undelivered_sms_exits_one(use_system, make_system, canvas):
    use_system(make_system(canvas, TextbeltStub(response={"success": False, "error": "Out of quota"})))

    assert main(["--phone", PHONE, "--api-key", "token"]) == 1


def test_upstream_failure_exits_one(use_system, make_system, canvas):
    textbelt = TextbeltStub()
    use_system(make_system(canvas, textbelt))

    assert main(["--phone", PHONE, "--api-key", "expired"]) == 1
    assert textbelt.sent == []


def test_invalid_phone_exits_one(use_system, make_system, canvas):
    use_system(make_system(canvas, TextbeltStub()))

    assert main(["--phone", "12345", "--api-key", "token"]) == 1
    assert canvas.requests == []


def test_missing_configuration_exits_two(use_system, make_system, canvas):
    use_system(make_system(canvas, TextbeltStub(), composer_override=ReminderComposer(None)))

    assert main(["--phone", PHONE, "--api-key", "token"]) == 2
    assert canvas.requests == []


def test_batch_exit_code_reflects_failures(use_system, make_system, canvas):
    system = use_system(make_system(canvas, TextbeltStub()))
    system.registry.create("+14085550001", "token")
    assert main(["--all"]) == 0

    system.registry.create("+14085550002", "expired")
    assert main(["--all"]) == 1
