import pytest
from sqlalchemy.exc import OperationalError

from backend.app.schemas.notification import NotificationCreate, NotificationUpdate
from backend.services import notifications
from backend.services.errors import BranchAccessDenied, InvalidRequest, RecordNotFound
from backend.services.notifications import NotificationFeed


def _seed(db_session):
    notifications.notify(db_session, title=notifications.OUT_OF_STOCK, message="Beans out", branch="Maganjo", produce_name="Beans")
    notifications.notify(db_session, title=notifications.LOW_STOCK_BLOCK, message="Maize low", branch="Maganjo", produce_name="Maize")
    return notifications.notify(db_session, title=notifications.OUT_OF_STOCK, message="Rice out", branch="Matugga")


def test_feed_is_scoped_to_manager_branch(db_session, manager, agent, director):
    _seed(db_session)
    feed = NotificationFeed(db_session)

    items = feed.list(manager)
    assert len(items) == 2
    assert {n.branch for n in items} == {"Maganjo"}

    for actor in (agent, director):
        with pytest.raises(BranchAccessDenied):
            feed.list(actor)


def test_mark_read_and_unread_filter(db_session, manager):
    _seed(db_session)
    feed = NotificationFeed(db_session)
    first = feed.list(manager)[0]

    marked = feed.mark_read(manager, first.id)

    assert marked.read is True
    assert first.id not in [n.id for n in feed.list(manager, unread_only=True)]
    assert len(feed.list(manager, unread_only=True)) == 1


def test_other_branch_notification_is_not_found(db_session, manager):
    matugga = _seed(db_session)
    feed = NotificationFeed(db_session)

    with pytest.raises(RecordNotFound):
        feed.get(manager, matugga.id)
    with pytest.raises(RecordNotFound):
        feed.delete(manager, matugga.id)


def test_delete_and_limit(db_session, manager):
    _seed(db_session)
    feed = NotificationFeed(db_session)

    assert len(feed.list(manager, limit=1)) == 1

    for n in feed.list(manager):
        feed.delete(manager, n.id)
    assert feed.list(manager) == []


def test_notify_failure_is_swallowed_and_logged(db_session, monkeypatch, caplog):
    def broken_commit():
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk full"))

    monkeypatch.setattr(db_session, "commit", broken_commit)

    assert notifications.notify(db_session, title="x", message="y", branch="Maganjo") is None
    assert "notification write failed" in caplog.text


def test_manager_creates_notification_for_own_branch(db_session, manager, agent):
    """
    GIVEN
    - un manager de Maganjo crée une notification sans branche

    THEN
    - la branche est celle du manager, read = False
    - une branche fournie dans la requête est refusée, même la bonne
    """
    feed = NotificationFeed(db_session)

    n = feed.create(manager, NotificationCreate(title="Restock", message="Order more beans", produce_name="Beans"))

    assert (n.branch, n.read, n.produce_name) == ("Maganjo", False, "Beans")
    assert [x.id for x in feed.list(manager)] == [n.id]

    with pytest.raises(InvalidRequest) as err:
        feed.create(manager, NotificationCreate(title="Restock", message="Order more beans", branch="Maganjo"))
    assert err.value.status_code == 400
    with pytest.raises(BranchAccessDenied):
        feed.create(agent, NotificationCreate(title="Restock", message="Order more beans"))

    assert len(feed.list(manager)) == 1


def test_update_changes_only_given_fields(db_session, manager):
    _seed(db_session)
    feed = NotificationFeed(db_session)
    first = feed.list(manager)[0]
    original_message = first.message

    updated = feed.update(manager, first.id, NotificationUpdate(title="Handled", read=True))

    assert (updated.title, updated.message, updated.read) == ("Handled", original_message, True)


def test_update_other_branch_is_not_found(db_session, manager):
    matugga = _seed(db_session)

    with pytest.raises(RecordNotFound):
        NotificationFeed(db_session).update(manager, matugga.id, NotificationUpdate(read=True))
