from .base import Folder, register_folder_class


@register_folder_class
class CalendarFolder(Folder):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/calendarfolder"""
    ELEMENT_NAME = 'CalendarFolder'
    CONTAINER_CLASS = 'IPF.Appointment'


@register_folder_class
class ContactsFolder(Folder):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/contactsfolder"""
    ELEMENT_NAME = 'ContactsFolder'
    CONTAINER_CLASS = 'IPF.Contact'


@register_folder_class
class TasksFolder(Folder):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/tasksfolder"""
    ELEMENT_NAME = 'TasksFolder'
    CONTAINER_CLASS = 'IPF.Task'


FOLDER_CLASSES = (Folder, CalendarFolder, ContactsFolder, TasksFolder)
