# imapreader/constants.py
# RFC 3501 IMAP system flags
SEEN = r"\Seen"
ANSWERED = r"\Answered"
FLAGGED = r"\Flagged"
DELETED = r"\Deleted"
DRAFT = r"\Draft"
RECENT = r"\Recent"

# Well-known Gmail mailboxes
GMAIL_INBOX = "INBOX"
GMAIL_ALL_MAIL = "[Gmail]/All Mail"
