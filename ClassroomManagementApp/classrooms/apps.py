from django.apps import AppConfig

class ClassroomsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ClassroomManagementApp.classrooms"
    label = "classrooms"
