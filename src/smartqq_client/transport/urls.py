"""Endpoint catalog for the SmartQQ web API."""

from enum import Enum
from typing import Any, Optional

_S_REFERER = "http://s.web2.qq.com/proxy.html?v=20130916001&callback=1&id=1"
_D1_REFERER = "http://d1.web2.qq.com/proxy.html?v=20151105001&callback=1&id=2"
_LOGIN_REFERER = (
    "https://ui.ptlogin2.qq.com/cgi-bin/login?daid=164&target=self&style=16"
    "&mibao_css=m_webqq&appid=501004106&enable_qlogin=0&no_verifyimg=1"
    "&s_url=http%3A%2F%2Fw.qq.com%2Fproxy.html&f_url=loginerroralert"
    "&strong_login=1&login_state=10&t=20131024001"
)


class ApiURL(Enum):
    """
    URL template and referer for each endpoint.

    Templates use ``{1}``, ``{2}``... placeholders filled by ``build_url``.
    """

    SMART_QQ = ("http://w.qq.com/", None)
    LOGIN_PAGE = (_LOGIN_REFERER, "http://w.qq.com/")
    PROXY_PAGE = (_D1_REFERER, "http://w.qq.com/")
    GET_QR_CODE = (
        "https://ssl.ptlogin2.qq.com/ptqrshow?appid=501004106&e=0&l=M&s=5&d=72&v=4&t=0.1",
        "",
    )
    VERIFY_QR_CODE = (
        "https://ssl.ptlogin2.qq.com/ptqrlogin?webqq_type=10&remember_uin=1&login2qq=1"
        "&aid=501004106&u1=http%3A%2F%2Fw.qq.com%2Fproxy.html%3Flogin2qq%3D1%26webqq_type%3D10"
        "&ptredirect=0&ptlang=2052&daid=164&from_ui=1&pttype=1&dumy=&fp=loginerroralert"
        "&action=0-0-157510&mibao_css=m_webqq&t=1&g=1&js_type=0&js_ver=10143&login_sig="
        "&pt_randsalt=0",
        _LOGIN_REFERER,
    )
    GET_PTWEBQQ = ("{1}", None)
    GET_VFWEBQQ = (
        "http://s.web2.qq.com/api/getvfwebqq?ptwebqq={1}&clientid=53999199&psessionid=&t=0.1",
        _S_REFERER,
    )
    GET_UIN_AND_PSESSIONID = ("http://d1.web2.qq.com/channel/login2", _D1_REFERER)
    AVOID_RETCODE_103 = (
        "http://d1.web2.qq.com/channel/get_online_buddies2?vfwebqq={1}&clientid={2}"
        "&psessionid={3}&t=0.1",
        _D1_REFERER,
    )
    GET_GROUP_LIST = ("http://s.web2.qq.com/api/get_group_name_list_mask2", _S_REFERER)
    POLL_MESSAGE = ("http://d1.web2.qq.com/channel/poll2", _D1_REFERER)
    SEND_MESSAGE_TO_GROUP = ("http://d1.web2.qq.com/channel/send_qun_msg2", _D1_REFERER)
    GET_FRIEND_LIST = ("http://s.web2.qq.com/api/get_user_friends2", _S_REFERER)
    SEND_MESSAGE_TO_FRIEND = ("http://d1.web2.qq.com/channel/send_buddy_msg2", _D1_REFERER)
    GET_DISCUSS_LIST = (
        "http://s.web2.qq.com/api/get_discus_list?clientid=53999199&psessionid={1}"
        "&vfwebqq={2}&t=0.1",
        _S_REFERER,
    )
    SEND_MESSAGE_TO_DISCUSS = ("http://d1.web2.qq.com/channel/send_discu_msg2", _D1_REFERER)
    GET_ACCOUNT_INFO = ("http://s.web2.qq.com/api/get_self_info2?t=0.1", _S_REFERER)
    GET_RECENT_LIST = ("http://d1.web2.qq.com/channel/get_recent_list2", _D1_REFERER)
    GET_FRIEND_STATUS = (
        "http://d1.web2.qq.com/channel/get_online_buddies2?vfwebqq={1}&clientid=53999199"
        "&psessionid={2}&t=0.1",
        _D1_REFERER,
    )
    GET_GROUP_INFO = (
        "http://s.web2.qq.com/api/get_group_info_ext2?gcode={1}&vfwebqq={2}&t=0.1",
        _S_REFERER,
    )
    GET_QQ_BY_ID = (
        "http://s.web2.qq.com/api/get_friend_uin2?tuin={1}&type=1&vfwebqq={2}&t=0.1",
        _S_REFERER,
    )
    GET_DISCUSS_INFO = (
        "http://d1.web2.qq.com/channel/get_discu_info?did={1}&vfwebqq={2}&clientid=53999199"
        "&psessionid={3}&t=0.1",
        _D1_REFERER,
    )
    GET_FRIEND_INFO = (
        "http://s.web2.qq.com/api/get_friend_info2?tuin={1}&vfwebqq={2}&clientid=53999199"
        "&psessionid={3}&t=0.1",
        _S_REFERER,
    )
    CHANGE_STATUS = (
        "http://d1.web2.qq.com/channel/change_status2?newstatus={1}&clientid=53999199"
        "&psessionid={2}&t=0.1",
        _D1_REFERER,
    )
    GET_USER_FACE = (
        "http://face{1}.web.qq.com/cgi/svr/face/getface?cache=1&type=1&f=40&uin={2}"
        "&t=1475053232&vfwebqq={3}",
        "http://w.qq.com/",
    )

    def __init__(self, url: str, referer: Optional[str]) -> None:
        self.url = url
        self.referer = referer

    @property
    def origin(self) -> str:
        """Scheme and path prefix sent as the ``Origin`` header on POSTs."""
        return self.url[: self.url.rfind("/")]

    def build_url(self, *params: Any) -> str:
        """Fill ``{1}``, ``{2}``... with ``params`` in order."""
        url = self.url
        for index, param in enumerate(params, start=1):
            url = url.replace("{" + str(index) + "}", str(param))
        return url

    def https_url(self, *params: Any) -> str:
        """Like ``build_url`` but over HTTPS, for the chat endpoints."""
        url = self.build_url(*params)
        if url.startswith("http://"):
            return "https://" + url[len("http://"):]
        return url
