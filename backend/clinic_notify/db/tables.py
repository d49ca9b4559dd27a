"""
Single source of truth for the table names this service touches.

Only delivery_attempts is owned (created by our migrations). The rest belong to the
booking backend and are mapped read-only, except users.push_token which the
token store clears on a dead-token signal.
"""
OWNED_TABLE_NAMES = ("delivery_attempts",)

EXTERNAL_TABLE_NAMES = (
    "users",
    "hospitals",
    "reservations",
    "chat_rooms",
)

ALL_TABLE_NAMES = OWNED_TABLE_NAMES + EXTERNAL_TABLE_NAMES
