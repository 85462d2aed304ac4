EVENT_DIALOG = [
    '[role="dialog"]',
    '.VfPpkd-dgl2Hf-ppHlrf-sM5MNb',
]

SAVE_BUTTON = [
    '[data-action-id="save"]',
    'button[aria-label*="Save"]',
]
CLICKABLE = 'button, div[role="button"]'
SAVE_TEXT = "Save"

VIDEO_BUTTON_CANDIDATES = 'button, div[role="button"], [jsaction]'
VIDEO_BUTTON_LABELS = (
    "add video conferencing",
    "add google meet video conferencing",
)

MEET_OPTION = [
    '[role="menuitem"]',
    '[role="option"]',
    'li',
]

MEET_LINK = '[href*="meet.google.com"]'
CONFERENCE_FIELD = '[data-field="conferenceData"]'
PLACEHOLDER_TOKENS = ("abc-defg-hij", "placeholder")

ROOM_DIALOG = '[role="dialog"][aria-label*="room"], [role="dialog"][aria-label*="Room"]'

CLOSE_TRIGGERS = '[aria-label*="Close"], [data-action-id="cancel"]'

SUBMENU_HIDE_RULE_ID = "meetadd-hide-submenu"
SUBMENU_HIDE_CSS = (
    '[role="menu"], [role="listbox"] '
    "{ opacity: 0 !important; transition: none !important; }"
)
