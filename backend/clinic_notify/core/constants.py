"""
Centralized constants for the campaign scheduler and dispatch (Encapsulate What Changes).

Change job IDs, sweep windows or provider constants here instead of scattering
literals across main, jobs and queries.
"""

# Scheduler job IDs (must match ids used in scheduler.campaign_jobs.register_campaign_jobs)
REMINDER_JOB_ID = "campaign_reservation_reminder"
REVIEW_REQUEST_JOB_ID = "campaign_review_request"
UNANSWERED_CHAT_JOB_ID = "campaign_unanswered_chat"

# Overlapping runs are tolerated; the DeliveryLog anti-join limits duplicates.
CAMPAIGN_JOB_MAX_INSTANCES = 2

# Review request: reservations that became DONE between 25h and 24h ago.
# Run hourly, so each reservation falls in exactly one run's window.
REVIEW_REQUEST_DELAY_HOURS = 24
REVIEW_REQUEST_WINDOW_HOURS = 1

# Unanswered chat: last message older than this, and at most one alert per hospital in the same span
UNANSWERED_CHAT_AGE_HOURS = 24
UNANSWERED_CHAT_REALERT_HOURS = 24

# Reservation statuses read from the booking tables
RESERVATION_STATUS_CONFIRMED = "CONFIRMED"
RESERVATION_STATUS_DONE = "DONE"

# Kakao Biz result code for an accepted message
KAKAO_RESULT_OK = "0000"

# FCM
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
# Access tokens live 1h; refresh a bit before that
FCM_ACCESS_TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60

# Cap stored error text so provider bodies don't bloat delivery_attempts
ERROR_MESSAGE_MAX_LENGTH = 500
