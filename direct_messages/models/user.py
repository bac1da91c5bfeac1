from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    username: str
    full_name: Optional[str]
    email: Optional[str]


def display_name_of(user: UserDocument) -> str:
    return user.get("full_name") or user.get("username") or user.get("email") or str(user.get("_id", ""))
