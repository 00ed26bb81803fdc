from patchbound.callbacks import CallbackManager


def test_topic_callbacks_run_before_catch_all():
    manager = CallbackManager()
    calls = []
    manager.register(lambda v: calls.append(("any", v)))
    manager.register(lambda v: calls.append(("cut_off", v)), "cut_off")
    manager.register(lambda v: calls.append(("res", v)), "res")

    manager.dispatch("cut_off", 1)

    assert calls == [("cut_off", 1), ("any", 1)]


def test_failing_callback_does_not_stop_others():
    manager = CallbackManager()
    calls = []

    def broken(_):
        raise RuntimeError("boom")

    manager.register(broken, "transport")
    manager.register(calls.append, "transport")

    manager.dispatch("transport", "snapshot")

    assert calls == ["snapshot"]


def test_unregister():
    manager = CallbackManager()
    calls = []
    manager.register(calls.append, "tag")

    assert manager.unregister(calls.append, "tag") is True
    assert manager.unregister(calls.append, "tag") is False

    manager.dispatch("tag", 1)
    assert calls == []
    assert manager.get_callback_counts() == {}


def test_clear_all():
    manager = CallbackManager()
    manager.register(print)
    manager.register(print, "x")
    assert manager.get_callback_counts() == {"*": 1, "x": 1}

    manager.clear_all()
    assert manager.get_callback_counts() == {}
