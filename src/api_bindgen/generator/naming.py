"""Identifier casing helpers and call-class naming.

Call classes are named from the path and the verb of a call:

  POST /rooms/{roomId}/invite            -> Invite
  GET  /rooms/{roomId}/messages          -> GetMessages
  PUT  /rooms/{roomId}/send/{type}/{txnId} -> SendEvent
  GET  /presence/list/{userId}           -> GetPresenceList
  PUT  /user/{userId}/rooms/{roomId}/tags/{tag} -> SetUserTag
  GET  /publicRooms                      -> GetPublicRooms

Literal paths that don't fit the patterns are special-cased first; the
pattern rules are then tried in order and the first match wins.
"""

import re

_WORD_SPLIT_RE = re.compile(r"[^0-9A-Za-z]+")

# Paths (and path/verb pairs) that get a fixed class name
_SPECIAL_PATHS: dict[str, str] = {
    "/account/password": "ChangeAccountPassword",
    "/account/deactivate": "DeactivateAccount",
    "/pushers/set": "SetPusher",
    "/sync": "Sync",
}


def capitalize(word: str) -> str:
    """Upper-case the first character, leave the rest alone."""
    return word[:1].upper() + word[1:]


def camel_case(text: str) -> str:
    """Convert 'room event', 'room_event' or 'm.room.event' to 'RoomEvent' style."""
    return "".join(capitalize(w) for w in _WORD_SPLIT_RE.split(text) if w)


def lower_camel_case(text: str) -> str:
    result = camel_case(text)
    return result[:1].lower() + result[1:]


def snake_case(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s2 = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[^0-9A-Za-z]+", "_", s2).strip("_").lower()


def _multiword(text: str) -> str:
    """'account/3pid' -> 'Account3pid', 'display_name' -> 'DisplayName'."""
    return "".join(capitalize(w) for w in re.split(r"[/_]", text))


def _make_regex(pattern: str) -> re.Pattern:
    """Expand the shorthand used by the naming rules.

    ``{}`` stands for any path variable, ``#`` for a word (captured) and
    ``#?`` for a word captured non-greedily.
    """
    expanded = pattern.replace("{}", r"\{\w+\}")
    expanded = re.sub(r"#(\?)?", lambda m: r"(\w+" + (m.group(1) or "") + ")", expanded)
    return re.compile(expanded)


def make_class_name(path: str, verb: str) -> str:
    """Build a class name for a call; returns '' if no rule applies."""
    if path in _SPECIAL_PATHS:
        return _SPECIAL_PATHS[path]
    if _make_regex("/room/{}").fullmatch(path):
        if verb == "get":
            return "ResolveRoom"
        if verb == "put":
            return "SetRoomAlias"
    if _make_regex("/download/{}/{}(/{})?").fullmatch(path):
        return "Download"
    if _make_regex("/sendToDevice/{}/{}").fullmatch(path):
        return "SendToDevice"
    if _make_regex("/admin/whois/{}").fullmatch(path):
        return "WhoIs"
    if _make_regex("/presence/{}/status").fullmatch(path):
        return "SetPresence"
    if _make_regex("/rooms/{}/receipt/{}/{}").fullmatch(path):
        return "PostReceipt"

    # /account/3pid/email/requestToken -> RequestTokenToAccount3pid
    m = _make_regex("/(#(?:/#)?)/email/requestToken").fullmatch(path)
    if m:
        return "RequestTokenTo" + _multiword(m.group(1))

    # /login/cas/ticket -> GetCasTicket
    m = _make_regex("^/login/cas/#").search(path)
    if m:
        return "GetCas" + capitalize(m.group(1))

    # /rooms/{id}/send/{type}/{txnId} -> SendEvent
    m = _make_regex(r"/#/{}/\{txnId\}").search(path)
    if m:
        return capitalize(m.group(1)) + "Event"

    # /presence/list/{userId}, /account/3pid -> GetPresenceList, GetAccount3pid
    m = _make_regex("^/#/#(?:/{})?").search(path)
    if m:
        return capitalize(verb) + capitalize(m.group(1)) + capitalize(m.group(2))

    if verb == "put":
        verb = "set"

    # /user/{id}/rooms/{id}/tags/{tag} -> SetUserTag
    # /user/{id}/filter -> PostUserFilter
    m = _make_regex("/user/{}(?:/#/{})?/#?(s?/{})?").fullmatch(path)
    if m:
        return capitalize(verb) + "User" + _multiword(m.group(2))

    if verb == "post":
        verb = ""

    # /upload, /publicRooms, /devices/{deviceId} -> Upload, GetPublicRooms, GetDevice
    m = _make_regex("/#?(s?/{})?").fullmatch(path)
    if m:
        return capitalize(verb) + capitalize(m.group(1))

    # /pushrules/{}/{}/{id}/enabled -> SetPushruleEnabled
    m = _make_regex("/#?s?/{}/{}(?:/{}(?:/#)?)?").fullmatch(path)
    if m:
        return capitalize(verb) + capitalize(m.group(1)) + capitalize(m.group(2) or "")

    # /rooms/{id}/invite, /profile/{id}/display_name -> Invite, GetDisplayName
    m = _make_regex("/#/{}/#(/{}){0,2}").fullmatch(path)
    if m:
        return capitalize(verb) + _multiword(m.group(2))

    return ""
