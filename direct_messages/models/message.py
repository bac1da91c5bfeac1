from datetime import datetime
from typing import TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    sender_id: str
    receiver_id: str
    body: str
    # assigned by the repository at insert, ties broken by _id
    created_at: datetime
    # only ever flips False -> True, for the receiver
    read: bool
