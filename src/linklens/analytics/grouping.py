"""The one viewer grouping key every aggregator uses."""

import hashlib
from collections.abc import Iterable

from linklens.analytics.schema import ViewerScope, ViewSession


def viewer_key(session: ViewSession, scope: ViewerScope = "link") -> str:
    """Return the grouping key of the viewer behind ``session``.

    Precedence is email (case-insensitive), then IP address, then session
    token. A session with none of them becomes its own singleton viewer,
    keyed by a digest of its content so the key is stable across calls.
    Byte-identical keyless records share that key; :func:`group_by_viewer`
    still keeps them apart.

    Args:
        session: The session to key.
        scope: "link" prefixes the key with the link id so the same person
            on two links is two viewers; "account" does not.
    """
    email = (session.viewer_email or "").strip().lower()
    if email:
        identity = f"email:{email}"
    elif session.ip_address:
        identity = f"ip:{session.ip_address.strip()}"
    elif session.session_id:
        identity = f"session:{session.session_id}"
    else:
        digest = hashlib.sha1(session.model_dump_json().encode(), usedforsecurity=False)
        identity = f"anon:{digest.hexdigest()[:16]}"

    if scope == "link":
        return f"{session.link_id}|{identity}"
    return identity


def group_by_viewer(
    sessions: Iterable[ViewSession],
    scope: ViewerScope = "link",
) -> dict[str, list[ViewSession]]:
    """Group sessions by :func:`viewer_key`, keys in sorted order.

    Sessions inside a group keep their input order. Keyless sessions are
    always singletons: repeats of an identical keyless record get numbered
    keys (``...#2``, ``...#3``) instead of merging into one viewer.
    """
    groups: dict[str, list[ViewSession]] = {}
    repeats: dict[str, int] = {}
    for session in sessions:
        key = viewer_key(session, scope)
        if _is_keyless(session):
            repeats[key] = repeats.get(key, 0) + 1
            if repeats[key] > 1:
                key = f"{key}#{repeats[key]}"
        groups.setdefault(key, []).append(session)
    return {key: groups[key] for key in sorted(groups)}


def _is_keyless(session: ViewSession) -> bool:
    return not (
        (session.viewer_email or "").strip() or session.ip_address or session.session_id
    )
