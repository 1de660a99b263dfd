"""Data models for SmartQQ Client."""

import json
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserStatus(str, Enum):
    """Presence status of an account."""

    ONLINE = "online"
    OFFLINE = "offline"
    AWAY = "away"
    HIDDEN = "hidden"
    BUSY = "busy"
    CALLME = "callme"
    SILENT = "silent"


class Font(BaseModel):
    """Message font."""

    name: str = "宋体"
    size: int = 10
    style: List[int] = Field(default_factory=lambda: [0, 0, 0])  # bold, italic, underline
    color: str = "000000"

    @classmethod
    def default(cls) -> "Font":
        return cls()


class TextElement(BaseModel):
    """Plain text segment of a message."""

    text: str

    def to_wire(self) -> Any:
        return self.text


class FaceElement(BaseModel):
    """Built-in emoticon segment of a message."""

    face_id: int

    def to_wire(self) -> Any:
        return ["face", self.face_id]


MessageContentElement = Union[TextElement, FaceElement]


def parse_content(raw: Sequence[Any]) -> tuple[Font, List[MessageContentElement]]:
    """
    Split a ``content`` array from the poll endpoint into font and elements.

    The array looks like ``[["font", {...}], "text", ["face", 14], ...]``.
    Unknown segment kinds are dropped.
    """
    font = Font.default()
    elements: List[MessageContentElement] = []
    for item in raw or []:
        if isinstance(item, str):
            elements.append(TextElement(text=item))
        elif isinstance(item, list) and len(item) >= 2:
            if item[0] == "font" and isinstance(item[1], dict):
                font = Font(**item[1])
            elif item[0] == "face":
                elements.append(FaceElement(face_id=int(item[1])))
    return font, elements


def to_content_json(
    elements: Sequence[Union[MessageContentElement, str]], font: Optional[Font] = None
) -> str:
    """
    Serialize message elements into the string the send endpoints expect.

    The value is JSON, but it travels as a string field inside ``r``.
    """
    wire: List[Any] = []
    for element in elements:
        if isinstance(element, str):
            wire.append(element)
        else:
            wire.append(element.to_wire())
    wire.append(["font", (font or Font.default()).model_dump()])
    return json.dumps(wire, ensure_ascii=False)


class _PolledMessage(BaseModel):
    """Fields shared by every inbound message."""

    time: int = 0
    user_id: int = 0
    font: Font = Field(default_factory=Font.default)
    elements: List[MessageContentElement] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def content(self) -> str:
        """Message text with emoticons rendered as ``[face:N]``."""
        parts = []
        for element in self.elements:
            if isinstance(element, TextElement):
                parts.append(element.text)
            else:
                parts.append(f"[face:{element.face_id}]")
        return "".join(parts)


class Message(_PolledMessage):
    """Private message from a friend."""

    @classmethod
    def from_poll(cls, value: dict) -> "Message":
        font, elements = parse_content(value.get("content", []))
        return cls(
            time=value.get("time", 0),
            user_id=value["from_uin"],
            font=font,
            elements=elements,
        )


class GroupMessage(_PolledMessage):
    """Message posted in a group."""

    group_id: int = 0

    @classmethod
    def from_poll(cls, value: dict) -> "GroupMessage":
        font, elements = parse_content(value.get("content", []))
        return cls(
            time=value.get("time", 0),
            user_id=value["send_uin"],
            group_id=value["group_code"],
            font=font,
            elements=elements,
        )


class DiscussMessage(_PolledMessage):
    """Message posted in a discussion."""

    discuss_id: int = 0

    @classmethod
    def from_poll(cls, value: dict) -> "DiscussMessage":
        font, elements = parse_content(value.get("content", []))
        return cls(
            time=value.get("time", 0),
            user_id=value["send_uin"],
            discuss_id=value["did"],
            font=font,
            elements=elements,
        )


class Friend(BaseModel):
    """Friend list entry."""

    user_id: int
    nickname: str = ""
    markname: Optional[str] = None
    vip: bool = False
    vip_level: int = 0


class Category(BaseModel):
    """Friend category (group of friends in the buddy list)."""

    index: int = 0
    sort: int = 0
    name: str = ""
    friends: List[Friend] = Field(default_factory=list)

    @classmethod
    def default_category(cls) -> "Category":
        return cls(index=0, sort=0, name="我的好友")


class Group(BaseModel):
    """Group list entry."""

    id: int = Field(alias="gid")
    name: str = ""
    flag: int = 0
    code: int = 0

    model_config = ConfigDict(populate_by_name=True)


class Discuss(BaseModel):
    """Discussion list entry."""

    id: int = Field(alias="did")
    name: str = ""

    model_config = ConfigDict(populate_by_name=True)


class Birthday(BaseModel):
    year: int = 0
    month: int = 0
    day: int = 0


class UserInfo(BaseModel):
    """Detailed profile of the account or a friend."""

    uin: Optional[int] = None
    nick: str = ""
    face: int = 0
    birthday: Optional[Birthday] = None
    occupation: str = ""
    phone: str = ""
    allow: int = 0
    college: str = ""
    constel: int = 0
    blood: int = 0
    homepage: str = ""
    stat: int = 0
    vip_info: int = 0
    country: str = ""
    city: str = ""
    personal: str = ""
    shengxiao: int = 0
    email: str = ""
    province: str = ""
    gender: str = ""
    mobile: str = ""
    signature: str = Field(default="", alias="lnick")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GroupUser(BaseModel):
    """Member of a group."""

    uin: int
    nick: str = ""
    province: str = ""
    gender: str = ""
    country: str = ""
    city: str = ""
    card: Optional[str] = None
    client_type: int = 0
    status: int = 0
    vip: bool = False
    vip_level: int = 0


class GroupInfo(BaseModel):
    """Group details with members."""

    gid: int = 0
    createtime: int = 0
    memo: str = ""
    name: str = ""
    owner: int = 0
    markname: str = ""
    users: List[GroupUser] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class DiscussUser(BaseModel):
    """Member of a discussion."""

    uin: int
    nick: str = ""
    client_type: int = 0
    status: str = ""


class DiscussInfo(BaseModel):
    """Discussion details with members."""

    did: int = 0
    name: str = Field(default="", alias="discu_name")
    users: List[DiscussUser] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Recent(BaseModel):
    """Recent conversation entry. ``type`` is 0 friend, 1 group, 2 discussion."""

    uin: int
    type: int = 0


class FriendStatus(BaseModel):
    """Online status of a friend."""

    uin: int
    status: str = ""
    client_type: int = 0

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> str:
        return "" if v is None else str(v)
