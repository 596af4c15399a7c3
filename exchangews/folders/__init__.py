from .base import Folder, register_folder_class, folder_class_for, to_folder_id, WELL_KNOWN_FOLDER_NAMES, \
    HARD_DELETE
from .known_folders import CalendarFolder, ContactsFolder, TasksFolder, FOLDER_CLASSES

__all__ = [
    'Folder', 'register_folder_class', 'folder_class_for', 'to_folder_id', 'WELL_KNOWN_FOLDER_NAMES', 'HARD_DELETE',
    'CalendarFolder', 'ContactsFolder', 'TasksFolder', 'FOLDER_CLASSES',
]
