from decouple import config

# Organizer publish alerts (Discord-compatible webhooks)
ORGANIZER_WEBHOOK_TIMEOUT = config("ORGANIZER_WEBHOOK_TIMEOUT", default=5.0, cast=float)

# Ticket QR rendering
TICKET_QR_BOX_SIZE = config("TICKET_QR_BOX_SIZE", default=10, cast=int)
TICKET_QR_BORDER = config("TICKET_QR_BORDER", default=2, cast=int)

TICKET_ID_MAX_ATTEMPTS = 5
