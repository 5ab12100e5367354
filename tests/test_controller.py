import time

from fakes import FakeAuth, FakeFeed, FakeScheduler, FakeStore, wait_for

from linkpulse.controller import Identity, Panel, ViewStateController
from linkpulse.controller.reducer import SAVE_FAILED_ERROR

U1 = Identity(user_id=1, username="u1")
U2 = Identity(user_id=2, username="u2")


def _controller(identity=None, **kwargs):
    auth, store, feed = FakeAuth(identity), FakeStore(), FakeFeed()
    alerts = []
    kwargs.setdefault("on_alert", alerts.append)
    controller = ViewStateController(auth, store, feed, **kwargs)
    controller.alerts = alerts
    return controller, auth, store, feed


def test_initialize_session_looks_up_once_and_registers_one_listener():
    controller, auth, store, feed = _controller(U1)
    controller.initialize_session()
    controller.initialize_session()

    assert auth.lookups == 1
    assert len(auth.listeners) == 1
    assert controller.state.identity == U1
    assert store.count("query") == 1
    assert len(feed.open_channels) == 1
    assert feed.open_channels[0].filters == {"user_id": 1}
    assert set(feed.open_channels[0].events) == {"insert", "update", "delete"}


def test_close_releases_listener_and_channel_exactly_once():
    controller, auth, _, feed = _controller(U1)
    controller.initialize_session()
    controller.close()
    controller.close()

    assert auth.unsubscribed == [1]
    assert auth.listeners == {}
    assert feed.open_channels == []


def test_context_manager_initializes_and_tears_down():
    auth, store, feed = FakeAuth(U1), FakeStore(), FakeFeed()
    with ViewStateController(auth, store, feed) as controller:
        assert controller.state.authenticated
        assert len(feed.open_channels) == 1
    assert feed.open_channels == []
    assert auth.listeners == {}


def test_events_after_close_are_dropped():
    controller, auth, store, _ = _controller(U1)
    controller.initialize_session()
    controller.close()
    controller.refetch_bookmarks()
    assert store.count("query") == 1


def test_add_bookmark_scenario():
    controller, _, store, _ = _controller(U1)
    controller.initialize_session()
    assert controller.state.bookmarks == ()

    controller.save(title="Docs", url="https://docs.example.com")

    state = controller.state
    assert [(b.title, b.url) for b in state.bookmarks] == [
        ("Docs", "https://docs.example.com")
    ]
    assert state.panel is Panel.LIST
    assert state.draft.title == "" and state.draft.url == ""
    assert store.count("insert") == 1
    assert store.count("update") == 0
    assert store.calls[-1] == (
        "insert",
        "bookmarks",
        {"title": "Docs", "url": "https://docs.example.com", "user_id": 1},
    )


def test_edit_bookmark_scenario():
    controller, _, store, _ = _controller(U1)
    controller.initialize_session()
    controller.save(title="Docs", url="https://docs.example.com")
    record = controller.state.bookmarks[0]

    controller.begin_edit(record)
    assert controller.state.panel is Panel.ADD
    controller.set_title("Documentation")
    controller.save()

    assert store.count("update") == 1
    assert store.count("insert") == 1
    assert store.calls[-1] == (
        "update",
        "bookmarks",
        record.id,
        {"title": "Documentation", "url": "https://docs.example.com"},
    )
    state = controller.state
    assert state.bookmarks[0].id == record.id
    assert state.bookmarks[0].title == "Documentation"
    assert state.draft.editing is None


def test_missing_field_never_reaches_the_store():
    controller, _, store, _ = _controller(U1)
    controller.initialize_session()
    controller.save(title="Docs", url="")

    assert store.count("insert") == 0
    assert store.count("update") == 0
    assert controller.state.draft.error


def test_insert_failure_leaves_collection_untouched():
    controller, _, store, _ = _controller(U1)
    controller.initialize_session()
    store.fail.add("insert")
    controller.save(title="Docs", url="https://docs.example.com")

    state = controller.state
    assert state.bookmarks == ()
    assert state.draft.error == SAVE_FAILED_ERROR
    assert state.panel is Panel.ADD


def test_failed_delete_reappears_after_refetch_and_alerts_once():
    controller, _, store, _ = _controller(U1)
    store.add(1, "Docs", "https://docs.example.com")
    controller.initialize_session()
    record_id = controller.state.bookmarks[0].id

    seen_during_delete = []
    original_delete = store.delete

    def observing_delete(table, bookmark_id):
        seen_during_delete.append(controller.state.bookmarks)
        original_delete(table, bookmark_id)

    store.delete = observing_delete
    store.fail.add("delete")
    controller.delete(record_id)

    assert seen_during_delete == [()]
    assert [b.id for b in controller.state.bookmarks] == [record_id]
    assert controller.alerts == ["Delete failed"]


def test_failed_delete_of_remotely_removed_record_stays_gone():
    controller, _, store, _ = _controller(U1)
    store.add(1, "Docs", "https://docs.example.com")
    controller.initialize_session()
    record_id = controller.state.bookmarks[0].id

    store.rows = []
    store.fail.add("delete")
    controller.delete(record_id)

    assert controller.state.bookmarks == ()
    assert controller.alerts == ["Delete failed"]


def test_remote_change_triggers_full_refetch():
    controller, _, store, feed = _controller(U1)
    controller.initialize_session()
    store.add(1, "From another tab", "https://other.example")

    feed.push("insert")

    assert [b.title for b in controller.state.bookmarks] == ["From another tab"]
    assert store.count("query") == 2


def test_debounced_notifications_share_one_refetch():
    scheduler = FakeScheduler()
    controller, _, store, feed = _controller(
        U1, refetch_debounce=0.5, scheduler=scheduler
    )
    controller.initialize_session()
    store.add(1, "One", "https://one.example")
    store.add(1, "Two", "https://two.example")

    feed.push("insert")
    feed.push("insert")
    feed.push("update")
    assert len(scheduler.jobs) == 1
    assert store.count("query") == 1

    scheduler.run_pending()
    assert store.count("query") == 2
    assert [b.title for b in controller.state.bookmarks] == ["Two", "One"]


def test_sign_out_cancels_pending_refetch():
    scheduler = FakeScheduler()
    controller, auth, store, feed = _controller(
        U1, refetch_debounce=0.5, scheduler=scheduler
    )
    controller.initialize_session()
    feed.push("insert")
    assert len(scheduler.jobs) == 1

    auth.emit(None)

    assert scheduler.jobs == []
    assert feed.open_channels == []


def test_background_scheduler_collapses_burst_into_one_refetch():
    controller, _, store, feed = _controller(U1, refetch_debounce=0.2)
    controller.initialize_session()
    store.add(1, "One", "https://one.example")

    for action in ("insert", "update", "delete"):
        feed.push(action)
    assert store.count("query") == 1

    assert wait_for(lambda: [b.title for b in controller.state.bookmarks] == ["One"])
    time.sleep(0.3)
    assert store.count("query") == 2

    # the refetch job has already fired
    controller.close()
    assert feed.open_channels == []


def test_background_scheduler_refetch_is_dropped_after_sign_out():
    controller, auth, store, feed = _controller(U1, refetch_debounce=0.2)
    controller.initialize_session()
    feed.push("insert")

    auth.emit(None)
    time.sleep(0.4)

    assert store.count("query") == 1
    assert controller.state.bookmarks == ()
    controller.close()


def test_switching_users_replaces_subscription_and_cache():
    controller, auth, store, feed = _controller(U1)
    store.add(1, "Mine", "https://mine.example")
    store.add(2, "Theirs", "https://theirs.example")
    controller.initialize_session()
    first_channel = feed.open_channels[0]

    controller.sign_out()
    assert not first_channel.open
    assert controller.state.bookmarks == ()
    assert feed.open_channels == []

    controller.sign_in("password", user_id=2, username="u2")
    assert controller.state.identity == U2
    assert [b.title for b in controller.state.bookmarks] == ["Theirs"]
    assert len(feed.open_channels) == 1
    assert feed.open_channels[0].filters == {"user_id": 2}


def test_sign_in_failure_surfaces_notice():
    controller, auth, _, _ = _controller(None)
    controller.initialize_session()
    auth.fail_sign_in = True
    controller.sign_in("password", user_id=1)

    assert not controller.state.authenticated
    assert controller.state.notice == "Sign-in failed"


def test_refetch_failure_is_reported_without_raising():
    controller, _, store, _ = _controller(U1)
    controller.initialize_session()
    store.fail.add("query")
    controller.refetch_bookmarks()

    assert controller.state.notice == "Could not refresh bookmarks"


def test_channel_failure_still_loads_collection():
    auth, store, feed = FakeAuth(U1), FakeStore(), FakeFeed()
    feed.fail_subscribe = True
    store.add(1, "Docs", "https://docs.example.com")
    controller = ViewStateController(auth, store, feed)
    controller.initialize_session()

    assert len(controller.state.bookmarks) == 1
    assert controller.state.notice == "Live updates are unavailable"


def test_state_listener_sees_each_change():
    seen = []
    controller, _, _, _ = _controller(U1, on_state_change=seen.append)
    controller.initialize_session()
    controller.switch_panel("list")

    assert seen[-1].panel is Panel.LIST
    assert any(state.authenticated for state in seen)
