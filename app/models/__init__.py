from .user import User
from .property import Property, PropertyImage, PropertyStatusHistory, PropertyView
from .inquiry import Inquiry, InquiryNote, FollowUpReminder
from .ticket_sequence import TicketSequence
from .calendar_event import CalendarEvent
from .activity_log import ActivityLog

__all__ = [
    "User",
    "Property",
    "PropertyImage",
    "PropertyStatusHistory",
    "PropertyView",
    "Inquiry",
    "InquiryNote",
    "FollowUpReminder",
    "TicketSequence",
    "CalendarEvent",
    "ActivityLog",
]
