import logging

from twin_lib.tasks import BackgroundRunner

async def answer():
    return 42

async def explode():
    raise RuntimeError('provider down')

def test_spawned_task_result():
    runner = BackgroundRunner('test-runner')
    try:
        assert runner.spawn(answer(), 'answer task').result(timeout=5) == 42
    finally:
        runner.shutdown()

def test_failed_task_is_logged_and_dropped(caplog):
    caplog.set_level(logging.ERROR, logger='twin_lib.tasks')
    runner = BackgroundRunner('test-runner')

    future = runner.spawn(explode(), 'exploding task')
    assert isinstance(future.exception(timeout=5), RuntimeError)
    # Joins the loop thread, so the done-callback has run
    runner.shutdown()

    messages = [record.getMessage() for record in caplog.records if record.levelno == logging.ERROR]
    assert 'exploding task failed: provider down' in messages

def test_runner_keeps_working_after_a_failure():
    runner = BackgroundRunner('test-runner')
    try:
        runner.spawn(explode(), 'exploding task').exception(timeout=5)
        assert runner.spawn(answer(), 'answer task').result(timeout=5) == 42
    finally:
        runner.shutdown()

def test_shutdown_without_work_is_a_no_op():
    BackgroundRunner('idle-runner').shutdown()
