# backend/utils/groups.py
"""Group visibility rules shared by events, announcements and WhatsApp links."""

HEBREW_LETTERS = [
    "א", "ב", "ג", "ד", "ה", "ו", "ז", "ח", "ט", "י", "כ", "ל",
    "מ", "ן", "נ", "ס", "ע", "פ", "צ", "ק", "ר", "ש", "ת",
]

ALL_GROUPS = "ALL"


def get_visible_keys(user_groups=None):
    """Target keys a user matches: their own groups plus the ALL sentinel."""
    user_groups = list(user_groups or [])
    return user_groups + [ALL_GROUPS] if user_groups else [ALL_GROUPS]


def format_groups_display(groups=None):
    if not groups:
        return "לא משויך לקבוצה"
    if ALL_GROUPS in groups:
        return "כל הקבוצות"
    return ", ".join(groups)


def can_user_see_event(user_groups=None, event_groups=None):
    # Events without groups are public
    if not event_groups or ALL_GROUPS in event_groups:
        return True
    if not user_groups:
        return False
    return any(group in event_groups for group in user_groups)


def can_user_see_announcement(user_groups=None, target_groups=None):
    target_groups = target_groups or []
    return any(key in target_groups for key in get_visible_keys(user_groups))


def normalize_groups(groups):
    """Clean a client-supplied group list; ALL collapses everything else away."""
    if not groups:
        return []
    if isinstance(groups, str):
        groups = [g for g in groups.split(",")]
    cleaned = []
    for group in groups:
        group = str(group).strip()
        if group and group not in cleaned:
            cleaned.append(group)
    if ALL_GROUPS in cleaned:
        return [ALL_GROUPS]
    return cleaned
