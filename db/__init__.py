from .db import (
    get_engine,
    create_all,
    insert_reminder,
    fetch_due_reminders,
    claim_reminder,
    release_claim,
    transition_reminder,
    get_reminder,
    list_reminders,
    update_pending_reminder,
    delete_pending_reminder,
    get_phone,
    get_phone_by_id,
    upsert_phone,
    mark_phone_verified,
    set_phone_notifications,
    delete_phone,
    dispose_engine,
)  # noqa: F401
