"""
Review 领域模型（Pydantic）。

用途：
- `ReviewPolicy`：仓库级 review 策略（`.github/ai-review.yml`），每个字段都有默认值
- `PullRequestSnapshot`：一次 review 的只读输入，review 结束即丢弃
- `ProcessingResult`：webhook 的处理结果（直接作为 HTTP 响应体）
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GeneralSettings(BaseModel):
    enabled: bool = True
    min_size: int = 10
    max_size: int = 1000
    style: str = "consolidated"


class FocusSettings(BaseModel):
    """关注点开关；字段顺序即 prompt 中的展示顺序。"""

    code_quality: bool = True
    security: bool = True
    performance: bool = True
    documentation: bool = True
    testing: bool = True
    architecture: bool = True
    maintainability: bool = True


class SeveritySettings(BaseModel):
    critical: bool = True
    high: bool = True
    medium: bool = True
    low: bool = True
    info: bool = True


class FileFilters(BaseModel):
    include: list[str] = Field(default_factory=lambda: ["**/*"])
    exclude: list[str] = Field(default_factory=list)


class CustomRule(BaseModel):
    name: str
    pattern: str
    description: str = ""
    severity: str = "medium"


class AISettings(BaseModel):
    provider: str | None = None
    model_id: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    custom_instructions: str | None = ""
    enable_fallback: bool | None = None
    fallback_provider: str | None = None


class ReviewPolicy(BaseModel):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    focus: FocusSettings = Field(default_factory=FocusSettings)
    severity: SeveritySettings = Field(default_factory=SeveritySettings)
    files: FileFilters = Field(default_factory=FileFilters)
    custom_rules: list[CustomRule] = Field(default_factory=list)
    ai: AISettings = Field(default_factory=AISettings)


class RuleViolation(BaseModel):
    """自定义规则命中（只用于日志/提示，不作为门禁）。"""

    rule: str
    description: str
    severity: str
    path: str
    line: int
    matched_text: str


class PullRequestFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    is_binary: bool = False
    patch: str | None = None


class PullRequestSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    title: str | None = None
    body: str | None = None
    files: tuple[PullRequestFile, ...] = ()


class ReviewDedupEntry(BaseModel):
    """`owner/repo/number` -> 上次 review 的时间（epoch 秒）与评论 id。"""

    timestamp: float
    comment_id: int


class ReviewDraft(BaseModel):
    """orchestrator 生成的评论正文 + 元信息（失败时 succeeded=False，正文是失败说明）。"""

    body: str
    succeeded: bool
    provider_name: str | None = None
    model_id: str | None = None
    used_fallback: bool = False


class ProcessingResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    processed: bool
    reason: str | None = None
    comment_id: int | None = Field(default=None, alias="commentId")
    error: str | None = None

    @classmethod
    def skipped(cls, reason: str) -> ProcessingResult:
        return cls(processed=False, reason=reason)

    def to_body(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)
