"""Project schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from shared.models import AutoFixStatus, ProjectType, SourceType

AUTO_READY_MESSAGE = "Fixed automatically – ready to deploy"
SECRET_MASK = "********"


def _auto_ready_message(auto_fix_status: str, ready_for_deploy: bool) -> str | None:
    if auto_fix_status == AutoFixStatus.SUCCESS.value and ready_for_deploy:
        return AUTO_READY_MESSAGE
    return None


class ProjectCreate(BaseModel):
    """Schema for registering a project."""

    name: str = Field(min_length=1, max_length=100)
    source_type: SourceType = SourceType.OTHER
    source_value: str = ""
    project_type: ProjectType | None = None
    normalized_folder_path: str | None = None


class ProjectUpdate(BaseModel):
    """Fields the user (or the normalization step) may change."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    project_type: ProjectType | None = None
    normalized_folder_path: str | None = None


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    source_type: str
    source_value: str
    project_type: str | None
    status: str
    auto_fix_status: str
    ready_for_deploy: bool
    normalized_folder_path: str | None
    deployed_url: str | None
    last_deploy_status: str | None
    qa_report: str | None
    last_pr_number: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field
    @property
    def auto_ready_message(self) -> str | None:
        return _auto_ready_message(self.auto_fix_status, self.ready_for_deploy)


class AutoFixRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    auto_fix_status: str
    auto_fix_report: str | None
    auto_fix_logs: str | None
    auto_fixed_at: datetime | None
    ready_for_deploy: bool

    @computed_field
    @property
    def auto_ready_message(self) -> str | None:
        return _auto_ready_message(self.auto_fix_status, self.ready_for_deploy)


class DeployStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    deployed_url: str | None
    last_deploy_id: str | None
    last_deploy_status: str | None
    deploy_logs: str | None
    render_service_id: str | None
    railway_service_id: str | None
    health_failures: int


class EnvVarValue(BaseModel):
    value: str = ""
    is_secret: bool = False


class EnvVarsRead(BaseModel):
    env_vars: dict[str, EnvVarValue]

    @classmethod
    def masked(cls, env_vars: dict | None) -> "EnvVarsRead":
        """Secret values are never echoed back."""
        shown = {}
        for key, entry in (env_vars or {}).items():
            value = EnvVarValue.model_validate(entry)
            if value.is_secret and value.value:
                value = EnvVarValue(value=SECRET_MASK, is_secret=True)
            shown[key] = value
        return cls(env_vars=shown)


class EnvVarsUpdate(BaseModel):
    env_vars: dict[str, EnvVarValue]


class EnvVarsUpdateResult(EnvVarsRead):
    warnings: list[str] = []


class EnvAutoFixResult(EnvVarsUpdateResult):
    added: list[str] = []


class ProjectFilesRead(BaseModel):
    root: str
    files: list[str]


class ProvidersRead(BaseModel):
    vercel: bool
    render: bool
    railway: bool
    llm: bool
    deploy_order: list[str]
