import pytest

from services.account_service import AccountDeletionError, AccountDeletionService


class Recorder:
    """Collects calls from every teardown collaborator in order."""

    def __init__(self, fail=None, error=None):
        self.calls = []
        self.fail = fail
        self.error = error or RuntimeError("boom")

    def _hit(self, name):
        self.calls.append(name)
        if self.fail == name:
            raise self.error

    # notifier
    def cancel_all(self, user_id):
        self._hit("cancel_reminders")

    # remote
    async def delete_all(self, user_id):
        self._hit("delete_remote")

    # identity
    async def delete_identity(self, user_id):
        self._hit("delete_identity")

    # settings repo
    def clear(self, user_id=None):
        self._hit("clear_settings")


class LocalStore:
    def __init__(self, recorder, name):
        self.recorder = recorder
        self.name = name

    def clear(self):
        self.recorder._hit(self.name)


class Sync:
    def __init__(self, recorder):
        self.recorder = recorder
        self.user_id = "42"

    def set_user_id(self, user_id):
        self.user_id = user_id
        self.recorder.calls.append("detach_sync")

    async def close(self):
        self.recorder.calls.append("close_sync")


def build(recorder):
    service = AccountDeletionService(recorder, recorder, recorder, recorder)
    store = LocalStore(recorder, "clear_store")
    queue = LocalStore(recorder, "clear_queue")
    return service, store, queue


async def test_teardown_runs_every_step_in_order():
    recorder = Recorder()
    service, store, queue = build(recorder)
    progress = []

    await service.delete_account("42", store, queue, Sync(recorder), on_progress=progress.append)

    assert recorder.calls == [
        "detach_sync", "close_sync",
        "cancel_reminders", "delete_remote", "delete_identity",
        "clear_store", "clear_queue", "clear_settings",
    ]
    assert progress[0].startswith("Step 1/5")
    assert progress[-1] == "Account deleted"


async def test_reminder_cancel_failure_is_swallowed():
    recorder = Recorder(fail="cancel_reminders")
    service, store, queue = build(recorder)

    await service.delete_account("42", store, queue)

    assert recorder.calls[-1] == "clear_settings"


async def test_remote_failure_aborts_before_identity():
    recorder = Recorder(fail="delete_remote", error=ConnectionError("network unreachable"))
    service, store, queue = build(recorder)

    with pytest.raises(AccountDeletionError) as exc:
        await service.delete_account("42", store, queue)

    assert exc.value.step == 2
    assert "connection" in exc.value.user_message.lower()
    assert "delete_identity" not in recorder.calls
    assert "clear_store" not in recorder.calls


async def test_stale_credentials_ask_user_to_sign_in_again():
    recorder = Recorder(fail="delete_identity", error=RuntimeError("auth/requires-recent-login"))
    service, store, queue = build(recorder)

    with pytest.raises(AccountDeletionError) as exc:
        await service.delete_account("42", store, queue)

    assert exc.value.step == 3
    assert "sign in again" in exc.value.user_message
    assert "clear_store" not in recorder.calls
    assert "clear_settings" not in recorder.calls


async def test_local_clear_failure_keeps_settings():
    recorder = Recorder(fail="clear_store")
    service, store, queue = build(recorder)

    with pytest.raises(AccountDeletionError) as exc:
        await service.delete_account("42", store, queue)

    assert exc.value.step == 4
    assert "clear_settings" not in recorder.calls


async def test_settings_failure_is_reported_as_step_five():
    recorder = Recorder(fail="clear_settings")
    service, store, queue = build(recorder)

    with pytest.raises(AccountDeletionError) as exc:
        await service.delete_account("42", store, queue)

    assert exc.value.step == 5
    assert exc.value.__cause__ is recorder.error
