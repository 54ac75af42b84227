"""Pytest configuration and shared fixtures."""

import json
import pytest
from pathlib import Path
from tempfile import TemporaryDirectory


MEETING_ID = "040000008200E00074C5B7101A82E0080000000010C3A9F5B1D4DA01000000000000000010000000"

ORGANIZER_DN = (
    "/o=ExchangeLabs/ou=Exchange Administrative Group (FYDIBOHF23SPDLT)"
    "/cn=Recipients/cn=0123456789abcdef0123456789abcdef-organizer"
)


@pytest.fixture
def temp_output_dir():
    """Create a temporary output directory for tests."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_ldif_export():
    """ldifde export of the Exchange container with two deleted-object references."""
    return r'''
dn: CN=Microsoft Exchange,CN=Services,CN=Configuration,DC=contoso,DC=com
changetype: add
otherWellKnownObjects: B:32:C262A929D691B74A9E068728F8F842EA:CN=Organization Management,OU=Microsoft E
 xchange Security Groups,DC=contoso,DC=com
otherWellKnownObjects: B:32:E5F8B3B0F5C9A04E9D4A0D5B6C7D8E9F:CN=Exchange Trusted Subsystem\0ADEL:6a1b2c3d-0000-1111-2222-333344445555,CN=Deleted Objects,DC=contoso,DC=com
otherWellKnownObjects: B:32:A1B2C3D4E5F60718293A4B5C6D7E8F90:CN=Exchange Servers,OU=Microsoft Exchange Security Groups,DC=contoso,DC=com
otherWellKnownObjects: B:32:0F1E2D3C4B5A69788796A5B4C3D2E1F0:CN=Exchange Windows Permissions\0ADEL:7b2c3d4e-0000-1111-2222-333344445555,CN=Deleted Objects,DC=contoso,DC=com

'''


@pytest.fixture
def clean_ldif_export():
    """ldifde export of the Exchange container with only good values."""
    return '''
dn: CN=Microsoft Exchange,CN=Services,CN=Configuration,DC=contoso,DC=com
changetype: add
otherWellKnownObjects: B:32:C262A929D691B74A9E068728F8F842EA:CN=Organization Management,OU=Microsoft Exchange Security Groups,DC=contoso,DC=com
otherWellKnownObjects: B:32:A1B2C3D4E5F60718293A4B5C6D7E8F90:CN=Exchange Servers,OU=Microsoft Exchange Security Groups,DC=contoso,DC=com

'''


@pytest.fixture
def sample_root_dse_export():
    """ldifde export of the root DSE."""
    return '''
dn:
changetype: add
configurationNamingContext: CN=Configuration,DC=contoso,DC=com

'''


def _log(**fields):
    base = {
        "CleanGlobalObjectId": MEETING_ID,
        "SubjectProperty": "Project Sync",
        "SentRepresentingDisplayName": "Olivia Organizer",
        "ResponsibleUserName": ORGANIZER_DN,
        "AppointmentState": "Meeting",
        "AppointmentRecurring": False,
        "IsCancelled": False,
        "IsAllDayEvent": False,
        "ParentDisplay": "Calendar",
    }
    base.update(fields)
    return base


@pytest.fixture
def sample_calendar_logs():
    """Calendar diagnostic logs from the organizer's mailbox, out of order.

    Relevant order: create (09:00), request sent (09:00:05), update (10:30),
    accept (11:00), cancel (next day). A TimeService update at 10:00 is noise.
    """
    create = _log(
        ItemClass="IPM.Appointment",
        ItemVersion=1,
        ItemId="AAMkAD-create",
        LastModifiedTime="/Date(1709283600000)/",
        CalendarLogTriggerAction="Create",
        LogClientInfoString="Client=OWA;Action=ViaProxy",
        MapiStartTime="2024-03-05T15:00:00Z",
        MapiEndTime="2024-03-05T16:00:00Z",
        Location="Room 1",
    )
    request = _log(
        ItemClass="IPM.Schedule.Meeting.Request",
        ItemVersion=1,
        ItemId="AAMkAD-request",
        LastModifiedTime="2024-03-01T09:00:05Z",
        CalendarLogTriggerAction="Create",
        LogClientInfoString="Client=OWA;Action=ViaProxy",
        SenderEmailAddress="organizer@contoso.com",
        ParentDisplay="Sent Items",
    )
    noise = _log(
        ItemClass="IPM.Appointment",
        ItemVersion=2,
        ItemId="AAMkAD-create",
        LastModifiedTime="2024-03-01T10:00:00.1234567Z",
        CalendarLogTriggerAction="Update",
        LogClientInfoString="Client=TBA;Service=TimeService",
        ResponsibleUserName="TimeService",
        MapiStartTime="2024-03-05T15:00:00Z",
        MapiEndTime="2024-03-05T16:00:00Z",
        Location="Room 1",
    )
    update = _log(
        ItemClass="IPM.Appointment",
        ItemVersion=3,
        ItemId="AAMkAD-create",
        LastModifiedTime="2024-03-01T10:30:00+00:00",
        CalendarLogTriggerAction="Update",
        LogClientInfoString="Client=OWA;Action=ViaProxy",
        MapiStartTime="2024-03-05T16:00:00Z",
        MapiEndTime="2024-03-05T17:00:00Z",
        Location="Room 2",
        IsCancelled="False",
    )
    accept = _log(
        ItemClass="IPM.Schedule.Meeting.Resp.Pos",
        ItemVersion=1,
        ItemId="AAMkAD-accept",
        LastModifiedTime="2024-03-01T11:00:00Z",
        CalendarLogTriggerAction="Create",
        LogClientInfoString="Client=Transport;Action=MeetingMessageProcessing",
        ResponsibleUserName="Transport",
        From="attendee@contoso.com",
        ParentDisplay="Inbox",
    )
    cancel = _log(
        ItemClass="IPM.Schedule.Meeting.Canceled",
        ItemVersion=1,
        ItemId="AAMkAD-cancel",
        LastModifiedTime="2024-03-02T08:00:00Z",
        CalendarLogTriggerAction="Create",
        LogClientInfoString="Client=OWA;Action=ViaProxy",
        From="organizer@contoso.com",
        ParentDisplay="Sent Items",
    )
    return [update, create, cancel, request, noise, accept]


@pytest.fixture
def sample_calendar_json(sample_calendar_logs):
    """ConvertTo-Json -Compress output for the sample logs."""
    return json.dumps(sample_calendar_logs)


@pytest.fixture
def sample_recipient_json():
    return json.dumps({
        "DisplayName": "Olivia Organizer",
        "PrimarySmtpAddress": "organizer@contoso.com",
        "RecipientTypeDetails": "UserMailbox",
        "Alias": "organizer",
        "LegacyExchangeDN": ORGANIZER_DN,
    })
