"""Sprint reporting deck — the seed Document loaded at start-up.

Seventeen slides (ids 0-5 and 7-17; id 6 was retired and is never reused).
Every sprint table is seeded with sprints 263-265 and zero values so the
deck renders before any data has been imported.
"""

from .models import (
    MAIN_TABLE,
    Column,
    Document,
    Slide,
    SlideData,
    SlideShape,
    Table,
)

SEED_SPRINTS = (263, 264, 265)

_SHEETS_URL = "https://docs.google.com/spreadsheets"
_CONTENT_SHEET = ("https://docs.google.com/spreadsheets/d/"
                  "1O0B4EYLHXCs5s0bWuvlH78cp3WllC2I4MpAw1ifSugU/edit")


def _sprint_col() -> Column:
    return Column("sprint", "Sprint", locked=True)


def _sprint_table(columns: list[Column], fill=0) -> Table:
    """A sprint-keyed table with one zeroed row per seed sprint.

    *fill* may be a dict of per-column seed values overriding the default.
    """
    rows = []
    for sprint in SEED_SPRINTS:
        row = {"sprint": sprint}
        for col in columns:
            row[col.key] = fill.get(col.key, 0) if isinstance(fill, dict) else fill
        rows.append(row)
    return Table(columns=[_sprint_col()] + columns, rows=rows)


# ---------------------------------------------------------------------------
# Slide 0: Sprint comparison
# ---------------------------------------------------------------------------
def _slide_comparison() -> Slide:
    return Slide(
        id=0,
        title="Sprint Comparison - Paid Users Overview",
        shape=SlideShape.COMPARISON,
        more_details_url=_SHEETS_URL,
        data=SlideData(extras={
            "sprints": [
                {"sprintNumber": 0, "paidUsers": 0, "totalPaidQTD": 0},
                {"sprintNumber": 0, "paidUsers": 0, "totalPaidQTD": 0},
            ],
            "quarters": [
                {"quarter": "Q1", "total": 0, "average": 0},
                {"quarter": "Q2", "total": 0, "average": 0},
            ],
        }),
    )


# ---------------------------------------------------------------------------
# Slide 1: Rankings
# ---------------------------------------------------------------------------
def _slide_rankings() -> Slide:
    regions = [{"region": r, "count": 0, "keywords": ""} for r in ("US", "UK", "DE")]
    return Slide(
        id=1,
        title="Top 25 Major Rankings and Movements",
        shape=SlideShape.RANKINGS,
        more_details_url=_SHEETS_URL,
        data=SlideData(
            tables={
                "positionChanges": _sprint_table([
                    Column("pos1_2", "Position 1-2"),
                    Column("pos3_10", "Position 3-10"),
                ]),
            },
            extras={
                "total": 0,
                "byRegion": regions,
                "improved": [{"region": "US", "count": 0, "keywords": ""}],
                "declined": [{"region": "US", "count": 0, "keywords": ""}],
            },
        ),
    )


# ---------------------------------------------------------------------------
# Slides 2, 3, 5, 12: plain sprint tables
# ---------------------------------------------------------------------------
def _plain_table_slide(slide_id: int, title: str, columns: list[Column],
                       url: str = _SHEETS_URL) -> Slide:
    return Slide(
        id=slide_id,
        title=title,
        shape=SlideShape.TABLE,
        more_details_url=url,
        data=SlideData(tables={MAIN_TABLE: _sprint_table(columns)}),
    )


def _slide_content_publishing() -> Slide:
    return _plain_table_slide(
        2, "Content Publishing Stats",
        [
            Column("blog", "Blog Posts"),
            Column("infographics", "Infographics"),
            Column("kb", "KB Articles"),
            Column("videos", "Videos"),
        ],
        url=f"{_CONTENT_SHEET}?gid=1006810399#gid=1006810399",
    )


def _slide_brand_mentions() -> Slide:
    return _plain_table_slide(
        3, "Brand Mentions",
        [
            Column("total", "Total"),
            Column("social", "Social"),
            Column("blogs", "Blogs"),
            Column("youtube", "YouTube"),
            Column("negative", "Negative"),
        ],
    )


def _slide_plugin_ranking() -> Slide:
    return Slide(
        id=4,
        title="WP Popular Plugin Ranking",
        shape=SlideShape.PLUGIN_RANKING,
        more_details_url=f"{_CONTENT_SHEET}?gid=1464999886#gid=1464999886",
        data=SlideData(
            tables={MAIN_TABLE: _sprint_table([Column("position", "Plugin Position")])},
            extras={"quarterTarget": 21},
        ),
    )


def _slide_paid_connections() -> Slide:
    return _plain_table_slide(
        5, "Plugin Paid Connections",
        [Column("total", "Total Paid"), Column("direct", "Direct Plans")],
        url=f"{_CONTENT_SHEET}?gid=929138315#gid=929138315",
    )


# ---------------------------------------------------------------------------
# Slide 7: Support data (tickets + live chat)
# ---------------------------------------------------------------------------
def _slide_support() -> Slide:
    tickets = _sprint_table(
        [
            Column("totalTickets", "Total Tickets Solved"),
            Column("avgFirstResponse", "Avg First Response Time"),
            Column("avgFullResolution", "Avg Full Resolution time"),
            Column("csat", "CSAT Score"),
            Column("presales", "Pre-sales Tickets"),
            Column("converted", "Converted Tickets (Unique customers)"),
            Column("paidSubs", "Total Paid subscriptions (websites)"),
            Column("agencyTickets", "Agency Tickets"),
            Column("badRating", "Bad Rating"),
        ],
        fill={"avgFirstResponse": "", "avgFullResolution": "", "csat": "",
              "badRating": "-", "totalTickets": 0, "presales": 0,
              "converted": 0, "paidSubs": 0, "agencyTickets": 0},
    )
    live_chat = _sprint_table(
        [
            Column("conversations", "Conversations assigned"),
            Column("avgAssignment", "Avg teammate assignment to first response"),
            Column("avgResolution", "Avg full resolution time"),
            Column("csat", "CSAT Score"),
            Column("badRating", "Bad Rating"),
        ],
        fill={"conversations": 0, "avgAssignment": "", "avgResolution": "",
              "csat": "", "badRating": "-"},
    )
    return Slide(
        id=7,
        title="Support data",
        shape=SlideShape.SUPPORT_DATA,
        more_details_url=_SHEETS_URL,
        data=SlideData(tables={"tickets": tickets, "liveChat": live_chat}),
    )


# ---------------------------------------------------------------------------
# Slide 8: Agency leads
# ---------------------------------------------------------------------------
def _slide_agency_leads() -> Slide:
    lead_cols = [
        Column("totalCount", "Total Count"),
        Column("fromTickets", "From Tickets"),
        Column("websiteLeads", "Website Leads (LP)"),
        Column("fromAds", "From Ads"),
        Column("liveChat", "Live chat"),
        Column("webApp", "Web app (Book a call)"),
    ]
    metrics = ["Total Leads Received", "Agency Demos",
               "New Agency Signups", "Paid Conversions"]
    leads = Table(
        columns=[Column("metrics", "Metrics", locked=True)] + lead_cols,
        rows=[{"metrics": m, **{c.key: 0 for c in lead_cols}} for m in metrics],
    )
    quarter = Table(
        columns=[
            Column("quarter", "Quarter", locked=True),
            Column("target", "Target"),
            Column("achieved", "Achieved"),
            Column("percentage", "Percentage"),
        ],
        rows=[{"quarter": f"Sprint {s}", "target": 0, "achieved": 0,
               "percentage": "0%"} for s in SEED_SPRINTS],
    )
    return Slide(
        id=8,
        title="Agency Leads & Conversion (Presales)",
        shape=SlideShape.AGENCY_LEADS,
        more_details_url=_SHEETS_URL,
        data=SlideData(tables={"leadsConversion": leads, "q3Performance": quarter}),
    )


# ---------------------------------------------------------------------------
# Slides 9, 11: Paid acquisition with quarter stats
# ---------------------------------------------------------------------------
def _quarter_stats_slide(slide_id: int, title: str) -> Slide:
    return Slide(
        id=slide_id,
        title=title,
        shape=SlideShape.QUARTER_STATS,
        more_details_url=_SHEETS_URL,
        data=SlideData(
            tables={MAIN_TABLE: _sprint_table([
                Column("totalAccounts", "Total Accounts"),
                Column("paidTrials", "Paid Trials"),
                Column("payingUsers", "Paying Users"),
            ])},
            aggregates={"quarterStats": {
                "accountsCreated": 0,
                "cardAdded": 0,
                "bannerActive": 0,
                "payingUsers": 0,
                "roas": 0,
            }},
        ),
    )


def _slide_observations() -> Slide:
    return Slide(
        id=10,
        title="Key Google Ads Observations",
        shape=SlideShape.TEXTAREA,
        more_details_url=_SHEETS_URL,
        data=SlideData(extras={"text": ""}),
    )


def _slide_agency_data() -> Slide:
    return _plain_table_slide(
        12, "Paid Acquisition - Agency Data",
        [
            Column("formFills", "Form Fills"),
            Column("demos", "Demo"),
            Column("signups", "Signups"),
            Column("paying", "Paying Agencies"),
        ],
    )


# ---------------------------------------------------------------------------
# Slides 13, 14: sprint tables against a target
# ---------------------------------------------------------------------------
def _slide_agency_signups() -> Slide:
    return Slide(
        id=13,
        title="Agency - Signups & Paid Users",
        shape=SlideShape.WITH_TARGET,
        more_details_url=_SHEETS_URL,
        data=SlideData(
            tables={MAIN_TABLE: _sprint_table([
                Column("signups", "Signups"),
                Column("paid", "Paid"),
                Column("percentage", "Target Achieved %"),
                Column("shortfall", "Shortfall"),
            ])},
            aggregates={"total": {"signups": 0, "paid": 0}},
            extras={"target": 27, "targetLabel": "SPRINT PAID TARGET",
                    "hideQtdStats": True},
        ),
    )


def _slide_affiliate() -> Slide:
    return Slide(
        id=14,
        title="Partnerships & Growth - Affiliate Partner Program",
        shape=SlideShape.WITH_TARGET,
        more_details_url=_SHEETS_URL,
        data=SlideData(
            tables={MAIN_TABLE: _sprint_table([
                Column("newAff", "New Affiliates"),
                Column("trials", "Trial Signups"),
                Column("paid", "Paid Signups"),
            ])},
            aggregates={"total": {"newAff": 0, "trials": 0, "paid": 0}},
            extras={"target": 1000, "targetLabel": "QUARTER TARGET"},
        ),
    )


# ---------------------------------------------------------------------------
# Slides 15, 16: partner programs with lifetime stats
# ---------------------------------------------------------------------------
def _slide_referral() -> Slide:
    return Slide(
        id=15,
        title="Partnerships & Growth - Referral Partner Program",
        shape=SlideShape.REFERRAL,
        more_details_url=_SHEETS_URL,
        data=SlideData(
            tables={MAIN_TABLE: _sprint_table([
                Column("advocates", "Advocates Onboarded"),
                Column("referrals", "Referrals Generated"),
                Column("trials", "Active Trial Signups"),
                Column("paid", "Paid Signups"),
            ])},
            aggregates={
                "lifetime": {"advocates": 0, "paid": 0},
                "total": {"advocates": 0, "referrals": 0, "trials": 0, "paid": 0},
            },
            extras={"target": 100, "current": 0},
        ),
    )


def _slide_wix_app() -> Slide:
    return Slide(
        id=16,
        title="Partnerships & Growth - Strategic Partner Program - Wix App",
        shape=SlideShape.WIX_APP,
        more_details_url=_SHEETS_URL,
        data=SlideData(
            tables={MAIN_TABLE: _sprint_table([
                Column("installs", "Installs"),
                Column("uninstalls", "Uninstalls"),
                Column("active", "Active Installs"),
                Column("freeSignups", "Free Signups"),
                Column("paid", "Paid Signups"),
            ])},
            aggregates={
                "lifetime": {"installs": 0, "active": 0, "paid": 0, "rating": 0},
                "total": {"installs": 0, "uninstalls": 0, "active": 0,
                          "freeSignups": 0, "paid": 0},
            },
            extras={"target": 100, "current": 0},
        ),
    )


# ---------------------------------------------------------------------------
# Slide 17: Subscriptions
# ---------------------------------------------------------------------------
def _slide_subscriptions() -> Slide:
    targets = [
        ("New Subscription (Direct)", 11009),
        ("New Subscription (Agency)", 315),
        ("Affiliate (paid signups)", 1000),
        ("Ads", 800),
    ]
    table = Table(
        columns=[
            Column("channel", "Channel"),
            Column("totalTarget", "Total Target"),
            Column("targetAsOnDate", "Target As On Date"),
            Column("actual", "Actual"),
            Column("percentage", "Percentage"),
        ],
        rows=[{"channel": ch, "totalTarget": t, "targetAsOnDate": 0,
               "actual": 0, "percentage": 0} for ch, t in targets],
    )
    return Slide(
        id=17,
        title="New subscriptions & paid signups",
        shape=SlideShape.SUBSCRIPTIONS,
        more_details_url=_SHEETS_URL,
        data=SlideData(tables={MAIN_TABLE: table}),
    )


# ---------------------------------------------------------------------------
# Deck builder
# ---------------------------------------------------------------------------
def build_sprint_deck() -> Document:
    """Build the seed sprint reporting deck."""
    return Document(
        slides=[
            _slide_comparison(),
            _slide_rankings(),
            _slide_content_publishing(),
            _slide_brand_mentions(),
            _slide_plugin_ranking(),
            _slide_paid_connections(),
            _slide_support(),
            _slide_agency_leads(),
            _quarter_stats_slide(9, "Paid Acquisition - Google Ads"),
            _slide_observations(),
            _quarter_stats_slide(11, "Paid Acquisition - Bing Ads"),
            _slide_agency_data(),
            _slide_agency_signups(),
            _slide_affiliate(),
            _slide_referral(),
            _slide_wix_app(),
            _slide_subscriptions(),
        ],
        current_sprint=0,
    )
