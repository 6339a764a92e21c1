from gasforms.services.notifications import LogNotifier, Toast, ToastNotifier


def test_subscribers_receive_toasts_until_unsubscribed():
    notifier = ToastNotifier()
    received = []
    unsubscribe = notifier.subscribe(received.append)

    notifier.notify(Toast("success", "Created", "Item created successfully"))
    unsubscribe()
    notifier.notify(Toast("info", "Draft saved", "saved", duration=2.0))

    assert [t.title for t in received] == ["Created"]
    assert [t.title for t in notifier.history] == ["Created", "Draft saved"]


def test_failing_subscriber_does_not_block_others():
    notifier = ToastNotifier()
    received = []

    def broken(toast):
        raise RuntimeError("render failed")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)
    notifier.notify(Toast("error", "Update Failed", "offline"))

    assert len(received) == 1


def test_history_is_bounded():
    notifier = ToastNotifier(history_size=3)
    for i in range(5):
        notifier.notify(Toast("info", f"t{i}", ""))

    assert [t.title for t in notifier.history] == ["t2", "t3", "t4"]
    notifier.clear()
    assert notifier.history == []


def test_log_notifier_accepts_any_kind():
    notifier = LogNotifier()
    notifier.notify(Toast("error", "Deletion Failed", "offline"))
    notifier.notify(Toast("success", "Deleted", "ok"))
