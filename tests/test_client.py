"""Tests for the SmartQQClient facade."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from smartqq_client import SmartQQClient
from smartqq_client.config import ClientConfig
from smartqq_client.exceptions import (
    PreconditionError,
    ProtocolError,
    SendFailedError,
    TransportError,
)
from smartqq_client.hashing import sign
from smartqq_client.logging import get_error_handler
from smartqq_client.models import FaceElement, Font, UserStatus
from smartqq_client.session import INITIAL_MESSAGE_ID

from conftest import create_response

SENT_OK = {"errCode": 0, "msg": "send ok"}


@pytest.fixture
def client():
    """Client that has not logged in."""
    return SmartQQClient(ClientConfig(qr_check_interval_seconds=0))


@pytest.fixture
def logged_in(client, credentials):
    """Client with an established session and no poll loop."""
    client.session.establish(credentials, UserStatus.ONLINE)
    return client


def sent_payload(call):
    return call.args[1]


async def _wait_for_polls(polls, count):
    while len(polls) < count:
        await asyncio.sleep(0.01)


class TestPreconditions:
    """Operations that need a session fail fast before login."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.send_message_to_friend(1, "hi"),
            lambda c: c.send_message_to_group(1, "hi"),
            lambda c: c.send_message_to_discuss(1, "hi"),
            lambda c: c.get_friend_list(),
            lambda c: c.get_group_list(),
            lambda c: c.get_discuss_list(),
            lambda c: c.get_friend_status(),
            lambda c: c.change_status(UserStatus.BUSY),
            lambda c: c.get_user_face(1),
        ],
    )
    async def test_requires_login(self, client, call):
        post_form = AsyncMock()
        get = AsyncMock()
        with patch.object(client._rest, "post_form", post_form), patch.object(
            client._rest, "get", get
        ):
            with pytest.raises(PreconditionError):
                await call(client)
        post_form.assert_not_called()
        get.assert_not_called()

    def test_initial_state(self, client):
        assert not client.is_logged_in
        assert not client.is_polling
        assert client.self_user_id is None
        assert client.self_status is None


class TestSending:
    """Tests for outbound messages."""

    @pytest.mark.asyncio
    async def test_friend_message_payload(self, logged_in):
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(logged_in._rest, "post_form", post_form):
            await logged_in.send_message_to_friend(12345, "hello")

        url = post_form.call_args.args[0]
        r = sent_payload(post_form.call_args)
        assert url == "http://d1.web2.qq.com/channel/send_buddy_msg2"
        assert r["to"] == 12345
        assert r["face"] == 573
        assert r["clientid"] == 53999199
        assert r["psessionid"] == "session_id_value"
        assert r["msg_id"] == INITIAL_MESSAGE_ID
        assert json.loads(r["content"]) == [
            "hello",
            ["font", {"name": "宋体", "size": 10, "style": [0, 0, 0], "color": "000000"}],
        ]
        assert post_form.call_args.kwargs["origin"] == "http://d1.web2.qq.com/channel"

    @pytest.mark.asyncio
    async def test_group_and_discuss_target_keys(self, logged_in):
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(logged_in._rest, "post_form", post_form):
            await logged_in.send_message_to_group(111, "g")
            await logged_in.send_message_to_discuss(222, "d")

        group_call, discuss_call = post_form.call_args_list
        assert group_call.args[0].endswith("/send_qun_msg2")
        assert sent_payload(group_call)["group_uin"] == 111
        assert discuss_call.args[0].endswith("/send_discu_msg2")
        assert sent_payload(discuss_call)["did"] == 222

    @pytest.mark.asyncio
    async def test_elements_and_font(self, logged_in):
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(logged_in._rest, "post_form", post_form):
            await logged_in.send_message_to_friend(
                1, ["look ", FaceElement(face_id=14)], font=Font(size=12)
            )

        content = json.loads(sent_payload(post_form.call_args)["content"])
        assert content[:2] == ["look ", ["face", 14]]
        assert content[2][1]["size"] == 12

    @pytest.mark.asyncio
    async def test_message_ids_shared_across_targets(self, logged_in):
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(logged_in._rest, "post_form", post_form):
            await logged_in.send_message_to_friend(1, "a")
            await logged_in.send_message_to_group(2, "b")
            await logged_in.send_message_to_discuss(3, "c")

        ids = [sent_payload(call)["msg_id"] for call in post_form.call_args_list]
        assert ids == [INITIAL_MESSAGE_ID, INITIAL_MESSAGE_ID + 1, INITIAL_MESSAGE_ID + 2]

    @pytest.mark.asyncio
    async def test_concurrent_sends_get_unique_ids(self, logged_in):
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(logged_in._rest, "post_form", post_form):
            await asyncio.gather(
                *(logged_in.send_message_to_friend(i, str(i)) for i in range(20))
            )

        ids = [sent_payload(call)["msg_id"] for call in post_form.call_args_list]
        assert sorted(ids) == list(range(INITIAL_MESSAGE_ID, INITIAL_MESSAGE_ID + 20))

    @pytest.mark.asyncio
    async def test_retry_reuses_message_id(self, logged_in):
        post_form = AsyncMock(
            side_effect=[create_response(status=500), create_response(SENT_OK)]
        )
        with patch.object(logged_in._rest, "post_form", post_form):
            await logged_in.send_message_to_friend(1, "retry me")

        ids = {sent_payload(call)["msg_id"] for call in post_form.call_args_list}
        assert post_form.call_count == 2
        assert ids == {INITIAL_MESSAGE_ID}

    @pytest.mark.asyncio
    async def test_all_attempts_fail(self, logged_in):
        post_form = AsyncMock(return_value=create_response(status=500))
        with patch.object(logged_in._rest, "post_form", post_form):
            with pytest.raises(TransportError) as exc_info:
                await logged_in.send_message_to_friend(1, "x")

        assert post_form.call_count == 5
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_rejected_send(self, logged_in):
        post_form = AsyncMock(return_value=create_response({"errCode": 1, "retcode": 1202}))
        with patch.object(logged_in._rest, "post_form", post_form):
            with pytest.raises(SendFailedError) as exc_info:
                await logged_in.send_message_to_friend(1, "x")
        assert exc_info.value.err_code == 1

    @pytest.mark.asyncio
    async def test_rejected_send_is_recorded(self, logged_in):
        get_error_handler().clear_error_history()
        post_form = AsyncMock(return_value=create_response({"errCode": 1, "retcode": 1202}))
        with patch.object(logged_in._rest, "post_form", post_form):
            with pytest.raises(SendFailedError):
                await logged_in.send_message_to_friend(1, "x")

        history = logged_in.get_error_history(context="send")
        assert len(history) == 1
        assert history[0]["type"] == "SendFailedError"
        assert history[0]["severity"] == "WARNING"

    @pytest.mark.asyncio
    async def test_successful_send_is_not_recorded(self, logged_in):
        get_error_handler().clear_error_history()
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(logged_in._rest, "post_form", post_form):
            await logged_in.send_message_to_friend(1, "x")

        assert logged_in.get_error_history(context="send") == []
    @pytest.mark.asyncio
    async def test_https_chat_urls(self, credentials):
        client = SmartQQClient(ClientConfig(https_chat_message=True))
        client.session.establish(credentials, UserStatus.ONLINE)
        post_form = AsyncMock(return_value=create_response(SENT_OK))
        with patch.object(client._rest, "post_form", post_form):
            await client.send_message_to_friend(1, "x")
        assert post_form.call_args.args[0] == "https://d1.web2.qq.com/channel/send_buddy_msg2"


class TestQueries:
    """Tests for list and info queries."""

    @pytest.mark.asyncio
    async def test_friend_list_is_signed(self, logged_in, credentials):
        result = {
            "friends": [{"flag": 0, "uin": 1, "categories": 0}, {"flag": 4, "uin": 2, "categories": 1}],
            "marknames": [{"uin": 2, "markname": "buddy", "type": 0}],
            "categories": [{"index": 1, "sort": 1, "name": "Work"}],
            "vipinfo": [{"vip_level": 3, "u": 1, "is_vip": 1}, {"vip_level": 0, "u": 2, "is_vip": 0}],
            "info": [{"face": 0, "flag": 0, "nick": "Alice", "uin": 1}, {"face": 0, "flag": 0, "nick": "Bob", "uin": 2}],
        }
        post_form = AsyncMock(return_value=create_response({"retcode": 0, "result": result}))
        with patch.object(logged_in._rest, "post_form", post_form):
            friends = await logged_in.get_friend_list()

        assert post_form.call_args.args[0] == "http://s.web2.qq.com/api/get_user_friends2"
        assert sent_payload(post_form.call_args) == {
            "vfwebqq": credentials.vf_token,
            "hash": sign(credentials.uin, credentials.pt_token),
        }
        by_id = {f.user_id: f for f in friends}
        assert by_id[1].nickname == "Alice"
        assert by_id[1].vip and by_id[1].vip_level == 3
        assert by_id[2].markname == "buddy"
        assert not by_id[2].vip

    @pytest.mark.asyncio
    async def test_friend_list_with_category(self, logged_in):
        result = {
            "friends": [{"uin": 1, "categories": 0}, {"uin": 2, "categories": 1}],
            "categories": [{"index": 1, "sort": 1, "name": "Work"}],
            "info": [{"nick": "Alice", "uin": 1}, {"nick": "Bob", "uin": 2}],
        }
        post_form = AsyncMock(return_value=create_response({"retcode": 0, "result": result}))
        with patch.object(logged_in._rest, "post_form", post_form):
            categories = await logged_in.get_friend_list_with_category()

        by_index = {c.index: c for c in categories}
        assert by_index[0].name == "我的好友"
        assert [f.nickname for f in by_index[0].friends] == ["Alice"]
        assert [f.nickname for f in by_index[1].friends] == ["Bob"]

    @pytest.mark.asyncio
    async def test_group_list(self, logged_in):
        result = {"gnamelist": [{"flag": 1, "name": "Team", "gid": 10, "code": 20}]}
        post_form = AsyncMock(return_value=create_response({"retcode": 0, "result": result}))
        with patch.object(logged_in._rest, "post_form", post_form):
            groups = await logged_in.get_group_list()

        assert [(g.id, g.name, g.code) for g in groups] == [(10, "Team", 20)]
        assert "hash" in sent_payload(post_form.call_args)

    @pytest.mark.asyncio
    async def test_discuss_list(self, logged_in):
        get = AsyncMock(
            return_value=create_response(
                {"retcode": 0, "result": {"dnamelist": [{"name": "Chat", "did": 7}]}}
            )
        )
        with patch.object(logged_in._rest, "get", get):
            discusses = await logged_in.get_discuss_list()

        assert [(d.id, d.name) for d in discusses] == [(7, "Chat")]
        assert "psessionid=session_id_value" in get.call_args.args[0]
        assert "vfwebqq=vf_token_value" in get.call_args.args[0]

    @pytest.mark.asyncio
    async def test_group_info_merges_member_tables(self, logged_in):
        result = {
            "ginfo": {"gid": 10, "name": "Team", "owner": 1, "createtime": 5, "memo": "m"},
            "minfo": [
                {"uin": 1, "nick": "Alice", "gender": "female"},
                {"uin": 2, "nick": "Bob", "gender": "male"},
            ],
            "stats": [{"client_type": 1, "uin": 1, "stat": 10}],
            "cards": [{"muin": 2, "card": "Bobby"}],
            "vipinfo": [{"vip_level": 6, "u": 1, "is_vip": 1}],
        }
        get = AsyncMock(return_value=create_response({"retcode": 0, "result": result}))
        with patch.object(logged_in._rest, "get", get):
            info = await logged_in.get_group_info(20)

        assert "gcode=20" in get.call_args.args[0]
        assert info.name == "Team"
        alice, bob = info.users
        assert alice.client_type == 1 and alice.status == 10
        assert alice.vip and alice.vip_level == 6
        assert bob.card == "Bobby"
        assert bob.card is not None and alice.card is None

    @pytest.mark.asyncio
    async def test_discuss_info(self, logged_in):
        result = {
            "info": {"did": 7, "discu_name": "Chat"},
            "mem_info": [{"uin": 1, "nick": "Alice"}, {"uin": 2, "nick": "Bob"}],
            "mem_status": [{"uin": 2, "status": "online", "client_type": 7}],
        }
        get = AsyncMock(return_value=create_response({"retcode": 0, "result": result}))
        with patch.object(logged_in._rest, "get", get):
            info = await logged_in.get_discuss_info(7)

        assert info.name == "Chat"
        assert [u.nick for u in info.users] == ["Alice", "Bob"]
        assert info.users[1].status == "online"
        assert info.users[1].client_type == 7

    @pytest.mark.asyncio
    async def test_account_and_friend_info(self, logged_in):
        get = AsyncMock(
            return_value=create_response(
                {"retcode": 0, "result": {"uin": 5, "nick": "Me", "lnick": "sig"}}
            )
        )
        with patch.object(logged_in._rest, "get", get):
            account = await logged_in.get_account_info()
            friend = await logged_in.get_friend_info(5)

        assert account.nick == "Me"
        assert account.signature == "sig"
        assert friend.uin == 5
        assert "tuin=5" in get.call_args.args[0]

    @pytest.mark.asyncio
    async def test_recent_list(self, logged_in):
        post_form = AsyncMock(
            return_value=create_response(
                {"retcode": 0, "result": [{"type": 0, "uin": 1}, {"type": 1, "uin": 2}]}
            )
        )
        with patch.object(logged_in._rest, "post_form", post_form):
            recent = await logged_in.get_recent_list()

        assert [(r.uin, r.type) for r in recent] == [(1, 0), (2, 1)]
        assert sent_payload(post_form.call_args) == {
            "vfwebqq": "vf_token_value",
            "clientid": 53999199,
            "psessionid": "",
        }

    @pytest.mark.asyncio
    async def test_qq_by_id(self, logged_in):
        get = AsyncMock(
            return_value=create_response(
                {"retcode": 0, "result": {"uiuin": "", "account": 123456789, "uin": 42}}
            )
        )
        with patch.object(logged_in._rest, "get", get):
            assert await logged_in.get_qq_by_id(42) == 123456789

    @pytest.mark.asyncio
    async def test_friend_status(self, logged_in):
        get = AsyncMock(
            return_value=create_response(
                {"retcode": 0, "result": [{"client_type": 1, "status": "online", "uin": 3}]}
            )
        )
        with patch.object(logged_in._rest, "get", get):
            statuses = await logged_in.get_friend_status()

        assert statuses[0].uin == 3
        assert statuses[0].status == "online"

    @pytest.mark.asyncio
    async def test_user_face(self, logged_in):
        get = AsyncMock(return_value=create_response(body=b"\xff\xd8jpeg"))
        with patch.object(logged_in._rest, "get", get):
            image = await logged_in.get_user_face(77)

        assert image == b"\xff\xd8jpeg"
        url = get.call_args.args[0]
        assert url.startswith("http://face")
        assert "uin=77" in url

    @pytest.mark.asyncio
    async def test_user_face_non_200(self, logged_in):
        get = AsyncMock(return_value=create_response(status=404))
        with patch.object(logged_in._rest, "get", get):
            with pytest.raises(TransportError):
                await logged_in.get_user_face(77)


class TestChangeStatus:
    """Tests for presence changes."""

    @pytest.mark.asyncio
    async def test_status_updated_on_success(self, logged_in):
        get = AsyncMock(return_value=create_response({"retcode": 0, "result": "ok"}))
        with patch.object(logged_in._rest, "get", get):
            await logged_in.change_status(UserStatus.BUSY)

        assert logged_in.self_status == UserStatus.BUSY
        assert "newstatus=busy" in get.call_args.args[0]

    @pytest.mark.asyncio
    async def test_status_kept_on_failure(self, logged_in):
        get = AsyncMock(return_value=create_response({"retcode": 100001}))
        with patch.object(logged_in._rest, "get", get):
            with pytest.raises(ProtocolError):
                await logged_in.change_status(UserStatus.HIDDEN)

        assert logged_in.self_status == UserStatus.ONLINE


class TestLifecycle:
    """Tests for login, polling and shutdown."""

    @pytest.mark.asyncio
    async def test_close_without_login(self, client):
        close = AsyncMock()
        with patch.object(client._rest, "close", close):
            await client.close()
            await client.close()
        close.assert_called_once()

    @pytest.mark.asyncio
    async def test_expired_login_does_not_poll(self, client):
        with patch.object(client._login, "login", AsyncMock(return_value=True)):
            assert await client.login() is True
        assert not client.is_polling

    @pytest.mark.asyncio
    async def test_login_starts_polling_and_close_now_stops_it(self, client, credentials):
        async def fake_login(session):
            session.establish(credentials, UserStatus.ONLINE)
            return False

        blocked = asyncio.Event()

        async def blocking_poll(*args, **kwargs):
            blocked.set()
            await asyncio.Event().wait()

        get = AsyncMock(return_value=create_response({"retcode": 0, "result": []}))
        close = AsyncMock()
        with patch.object(client._login, "login", AsyncMock(side_effect=fake_login)), \
                patch.object(client._rest, "get", get), \
                patch.object(client._rest, "post_form", blocking_poll), \
                patch.object(client._rest, "close", close):
            assert await client.login() is False
            assert client.is_logged_in
            assert client.self_user_id == credentials.uin
            # Friend status is fetched right after login
            assert "get_online_buddies2" in get.call_args.args[0]

            await asyncio.wait_for(blocked.wait(), timeout=1)
            assert client.is_polling

            await asyncio.wait_for(client.close_now(), timeout=1)

        assert not client.is_polling
        close.assert_called_once()

    @pytest.mark.asyncio
    async def test_second_login_stops_previous_poll_loop(self, client, credentials):
        async def fake_login(session):
            session.establish(credentials, UserStatus.ONLINE)
            return False

        polls = []

        async def blocking_poll(*args, **kwargs):
            polls.append(args)
            await asyncio.Event().wait()

        get = AsyncMock(return_value=create_response({"retcode": 0, "result": []}))
        close = AsyncMock()
        with patch.object(client._login, "login", AsyncMock(side_effect=fake_login)), \
                patch.object(client._rest, "get", get), \
                patch.object(client._rest, "post_form", blocking_poll), \
                patch.object(client._rest, "close", close):
            assert await client.login() is False
            first = client._poll_loop
            await asyncio.wait_for(_wait_for_polls(polls, 1), timeout=1)

            assert await asyncio.wait_for(client.login(), timeout=1) is False
            second = client._poll_loop

            assert second is not first
            assert not first.is_running
            assert second.is_running
            await asyncio.wait_for(_wait_for_polls(polls, 2), timeout=1)

            await asyncio.wait_for(client.close_now(), timeout=1)

        assert not second.is_running
        close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_from_handler(self, client, credentials):
        client.session.establish(credentials, UserStatus.ONLINE)
        answers = [
            create_response(
                {
                    "retcode": 0,
                    "result": [
                        {
                            "poll_type": "message",
                            "value": {"content": ["bye"], "from_uin": 1, "time": 0},
                        }
                    ],
                }
            )
        ]

        async def poll(*args, **kwargs):
            return answers.pop(0)

        closed = asyncio.Event()

        async def close():
            closed.set()

        @client.on_message
        async def handle(message):
            await client.close()

        with patch.object(client._rest, "post_form", poll), \
                patch.object(client._rest, "close", close):
            client._start_polling()
            await asyncio.wait_for(closed.wait(), timeout=1)

        assert not client.is_polling
