from choreograph.models.user import User
from choreograph.models.refresh_token import RefreshToken
from choreograph.models.project import Project, project_members, ProjectRole
from choreograph.models.column import Column
from choreograph.models.task import Task, TaskPriority
