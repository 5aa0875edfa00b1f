"""
Static copy shown around the request submission forms
"""
from residence.models import RequestCategory

POLICIES = {
    RequestCategory.COMPLAINT: (
        "Complaint Policy",
        [
            "All complaints are treated with confidentiality",
            "Response time may vary based on the severity of the issue",
            "False or malicious complaints may result in disciplinary action",
            "Updates on your complaint status will be provided through the dashboard",
        ],
    ),
    RequestCategory.MAINTENANCE: (
        "Maintenance Policy",
        [
            "Staff may need to enter your room to carry out the repair",
            "Urgent issues such as leaks or electrical faults are handled first",
            "Damage caused by misuse may be charged to your account",
            "Updates on your request status will be provided through the dashboard",
        ],
    ),
    RequestCategory.SLEEPOVER: (
        "Sleepover Policy",
        [
            "You are responsible for your guest for the whole stay",
            "Guests must sign out with the security code before leaving",
            "Requests can be denied if the residence is at capacity",
            "Updates on your request status will be provided through the dashboard",
        ],
    ),
}

THANK_YOU = {
    RequestCategory.COMPLAINT: (
        "Complaint Submitted Successfully",
        "Thank you for submitting your complaint. We will review it and get back to you soon.",
    ),
    RequestCategory.MAINTENANCE: (
        "Maintenance Request Submitted",
        "Thank you for reporting the issue. Maintenance staff will be in touch soon.",
    ),
    RequestCategory.SLEEPOVER: (
        "Sleepover Request Submitted",
        "Thank you for your request. You will be notified once it has been reviewed.",
    ),
}
