"""Global constants for the courtside application."""

# Collection names
EVENTS_COLLECTION = "events"
APPLICATIONS_COLLECTION = "participation_applications"
USERS_COLLECTION = "users"

# Firestore limits
FIRESTORE_BATCH_LIMIT = 400
FIRESTORE_IN_QUERY_LIMIT = 30

# Event timing
DEFAULT_EVENT_DURATION_MINUTES = 120
MEETUP_GRACE_HOURS = 24

# Feed limits
HOSTED_FEED_LIMIT = 20
PAST_HOSTED_LIMIT = 50
PAST_PARTICIPANT_SCAN_LIMIT = 100

# Event types and statuses
EVENT_TYPE_MATCH = "match"
EVENT_TYPE_MEETUP = "meetup"

EVENT_STATUS_CANCELLED = "cancelled"
EVENT_STATUS_PARTNER_PENDING = "partner_pending"

# Statuses scanned when looking for singles matches the user played in
PARTICIPANT_SCAN_STATUSES = ["completed", "active", "open"]

# Application statuses
APP_PENDING = "pending"
APP_APPROVED = "approved"
APP_REJECTED = "rejected"
APP_DECLINED = "declined"
APP_CANCELLED = "cancelled"
APP_CANCELLED_BY_HOST = "cancelled_by_host"
APP_CANCELLED_BY_USER = "cancelled_by_user"
APP_LOOKING_FOR_PARTNER = "looking_for_partner"
APP_PENDING_PARTNER_APPROVAL = "pending_partner_approval"
APP_MERGED = "merged"

ACTIVE_APPLICATION_STATUSES = frozenset(
    {
        APP_PENDING,
        APP_APPROVED,
        APP_LOOKING_FOR_PARTNER,
        APP_PENDING_PARTNER_APPROVAL,
    }
)
REJECTED_APPLICATION_STATUSES = frozenset(
    {
        APP_REJECTED,
        APP_CANCELLED_BY_HOST,
        APP_DECLINED,
        APP_CANCELLED,
        APP_CANCELLED_BY_USER,
    }
)
# Applications that always keep an event on the applicant's active list
SOLO_LOBBY_STATUSES = frozenset({APP_LOOKING_FOR_PARTNER, APP_PENDING_PARTNER_APPROVAL})
# Applications that keep a hosted event visible to its host
HOST_ACTION_STATUSES = frozenset(
    {APP_PENDING, APP_LOOKING_FOR_PARTNER, APP_PENDING_PARTNER_APPROVAL}
)

PARTNER_ACCEPTED = "accepted"

# Feed status filters
FEED_UPCOMING = "upcoming"
FEED_COMPLETED = "completed"
FEED_ALL = "all"
FEED_STATUSES = (FEED_UPCOMING, FEED_COMPLETED, FEED_ALL)
