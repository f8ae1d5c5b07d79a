"""Header-to-field mapper for the sprint deck.

Maps loosely-labelled imported rows onto a table's canonical column keys.
Sits between the ingestion layer (src.processor.ingestion) and the
reconciliation rules (src.processor.reconcile).

Each canonical key is resolved against the incoming headers in three
passes, first hit wins:

1. exact match after :func:`normalize_key`,
2. the key's synonym list (:data:`FIELD_SYNONYMS`),
3. substring containment in either direction, in header order.

Usage::

    from src.processor.mapper import HeaderResolver, map_rows

    rows = map_rows(["sprint", "blog", "kb"], raw_rows, headers)
"""

import re

from .ingestion import coerce_value, normalize_key


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FIELD_SYNONYMS: dict[str, list[str]] = {
    "sprint": ["sprint", "sprint id", "sprint no", "sprint number", "sprint #"],
    "blog": ["blog", "blogs", "blog posts", "blog post", "blog articles"],
    "infographics": ["infographics", "infographic"],
    "kb": ["kb", "kb articles", "knowledgebase", "knowledge base", "docs",
           "documentation", "articles"],
    "videos": ["videos", "video", "youtube", "yt"],
    "total": ["total", "total paid", "paid total", "total revenue"],
    "direct": ["direct", "direct plans"],
    "social": ["social", "social media"],
    "blogs": ["blogs", "blog mentions"],
    "youtube": ["youtube", "yt"],
    "negative": ["negative", "neg"],
    "position": ["position", "plugin position", "rank", "ranking"],
    "pos1_2": ["position 1-2", "pos 1-2", "top 2"],
    "pos3_10": ["position 3-10", "pos 3-10", "top 10"],
    "totalTickets": ["total tickets solved", "tickets solved", "tickets"],
    "avgFirstResponse": ["avg first response time", "first response time",
                         "first response"],
    "avgFullResolution": ["avg full resolution time", "full resolution time"],
    "csat": ["csat score", "csat", "satisfaction"],
    "presales": ["pre-sales tickets", "presales tickets", "presales"],
    "converted": ["converted tickets (unique customers)", "converted tickets",
                  "converted"],
    "paidSubs": ["total paid subscriptions (websites)", "paid subscriptions"],
    "agencyTickets": ["agency tickets"],
    "badRating": ["bad rating", "bad ratings"],
    "conversations": ["conversations assigned", "conversations", "chats"],
    "avgAssignment": ["avg teammate assignment to first response",
                      "teammate assignment", "assignment"],
    "avgResolution": ["avg full resolution time", "resolution time"],
    "totalCount": ["total count", "count"],
    "fromTickets": ["from tickets"],
    "websiteLeads": ["website leads (lp)", "website leads", "lp"],
    "fromAds": ["from ads", "ads"],
    "liveChat": ["live chat", "livechat"],
    "webApp": ["web app (book a call)", "web app", "book a call"],
    "totalAccounts": ["total accounts", "accounts"],
    "accountsCreated": ["accounts created", "accounts"],
    "paidTrials": ["paid trials", "trials"],
    "payingUsers": ["paying users", "paid users"],
    "cardAdded": ["card added", "cards added"],
    "bannerActive": ["banner active", "active banners"],
    "roas": ["roas", "return on ad spend"],
    "formFills": ["form fills", "forms"],
    "demos": ["demo", "demos"],
    "signups": ["signups", "sign ups"],
    "paying": ["paying agencies", "paying"],
    "paid": ["paid", "paid signups", "paid users"],
    "percentage": ["percentage", "target achieved %", "target achieved", "pct"],
    "shortfall": ["shortfall", "gap"],
    "newAff": ["new affiliates", "affiliates"],
    "trials": ["trial signups", "active trial signups", "trials"],
    "advocates": ["advocates onboarded", "advocates"],
    "referrals": ["referrals generated", "referrals"],
    "installs": ["installs", "installations"],
    "uninstalls": ["uninstalls"],
    "active": ["active installs", "active"],
    "freeSignups": ["free signups", "free"],
    "channel": ["channel", "subscription"],
    "totalTarget": ["total target"],
    "targetAsOnDate": ["target as on date", "target to date"],
    "actual": ["actual", "achieved"],
    "sprintNumber": ["sprint number", "sprint"],
    "paidUsers": ["paid users", "paying users"],
    "totalPaidQTD": ["total paid qtd", "qtd"],
    "metrics": ["metrics", "metric"],
    "quarter": ["quarter"],
    "target": ["target"],
    "achieved": ["achieved"],
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def extract_sprint_number(value):
    """Pull the first run of digits out of a sprint label.

    ``"Sprint 263"`` -> ``263``; numbers pass through; labels without any
    digits (``"QTD"``) are returned unchanged.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    match = re.search(r"\d+", str(value))
    if match:
        return int(match.group(0))
    return value


# ---------------------------------------------------------------------------
# HeaderResolver
# ---------------------------------------------------------------------------

class HeaderResolver:
    """Resolve canonical field keys against one import's raw headers.

    Parameters
    ----------
    headers : list[str]
        Raw headers in their original order. Later duplicates (after
        normalization) lose to earlier ones.
    synonyms : dict, optional
        Alias table; defaults to :data:`FIELD_SYNONYMS`.
    """

    def __init__(self, headers, synonyms=None):
        self.synonyms = FIELD_SYNONYMS if synonyms is None else synonyms
        self._lookup: dict[str, str] = {}
        for h in headers:
            n = normalize_key(h)
            if n and n not in self._lookup:
                self._lookup[n] = h

    def has_any(self, names) -> bool:
        """True if any of the (already normalized) *names* is a header."""
        return any(n in self._lookup for n in names)

    def find(self, key: str) -> str | None:
        """Return the raw header that supplies *key*, or ``None``."""
        key_n = normalize_key(key)
        if not key_n:
            return None

        # 1) exact
        if key_n in self._lookup:
            return self._lookup[key_n]

        # 2) synonyms
        for alias in self.synonyms.get(key, []):
            alias_n = normalize_key(alias)
            if alias_n in self._lookup:
                return self._lookup[alias_n]

        # 3) fuzzy contains, header order
        for h_n, raw in self._lookup.items():
            if key_n in h_n or h_n in key_n:
                return raw
        return None


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def map_row(keys, raw: dict, resolver: HeaderResolver,
            identity_key: str | None = "sprint") -> dict:
    """Map one raw row onto the canonical *keys*.

    Keys with no matching header fall back to a direct read of
    ``raw[key]`` so rows that are already canonically keyed (a JSON
    round-trip) map onto themselves. Keys found nowhere are left out of
    the result.
    """
    out = {}
    for key in keys:
        header = resolver.find(key)
        if header is not None and header in raw:
            value = raw[header]
        elif key in raw:
            value = raw[key]
        else:
            continue

        if key == "sprint" and key == identity_key:
            out[key] = extract_sprint_number(value)
        else:
            out[key] = coerce_value(value)
    return out


def map_rows(keys, raw_rows, headers=None, identity_key: str | None = "sprint",
             resolver: HeaderResolver | None = None) -> list[dict]:
    """Map every row in *raw_rows*; headers default to the first row's keys."""
    raw_rows = list(raw_rows)
    if resolver is None:
        if headers is None:
            headers = list(raw_rows[0]) if raw_rows else []
        resolver = HeaderResolver(headers)
    return [map_row(keys, raw, resolver, identity_key) for raw in raw_rows]
