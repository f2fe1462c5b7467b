"""Pull request body templates.

Custom templates live in ``<repo root>/.github/PULL_REQUEST_TEMPLATE/<name>.md``
and take precedence over the built-in ones.
"""

from pathlib import Path
from typing import Dict, List, Optional

from autopr.models import Language
from autopr.utils.logger import get_logger

logger = get_logger(__name__)

TEMPLATE_DIR = Path(".github") / "PULL_REQUEST_TEMPLATE"
FALLBACK_TEMPLATE = "feature"


class TemplateError(Exception):
    """Template storage error."""
    pass


DEFAULT_TEMPLATES: Dict[str, Dict[str, str]] = {
    "en": {
        "feature": """## Feature Description
A brief description of the new feature you're adding.

## Implementation Details
Explain the key implementation details and technical decisions.

## Testing
Describe how this feature was tested.

## Screenshots
If there are UI changes, include screenshots here.

## Related Issues
Related issue numbers: #""",
        "bugfix": """## Bug Description
Describe the bug that was fixed.

## Root Cause
Explain what was causing the bug.

## Solution
Describe how you fixed the issue.

## Testing
Explain how you tested the fix.

## Related Issues
Bug report: #""",
        "refactor": """## Refactoring Description
Describe what was refactored.

## Reason for Change
Explain why this refactoring was needed.

## Major Changes
List the key changes made during refactoring.

## Testing
Describe how you verified the refactoring doesn't break existing functionality.

## Performance Impact
Note any performance impacts from this change.""",
        "docs": """## Documentation Changes
Describe what documentation was changed.

## Reason for Change
Explain why these changes were needed.

## Major Changes
List the key documentation changes.""",
        "chore": """## Changes
Describe what maintenance work was performed.

## Reason for Change
Explain why these changes were needed.

## Scope
Indicate the scope of changes (build system, dependencies, configuration files, etc.).""",
        "test": """## Test Changes
Describe what tests were added or modified.

## Test Coverage
Explain what types of testing was added (unit, integration, E2E).

## Test Cases
List the key test cases that were implemented.""",
    },
    "ko": {
        "feature": """## 기능 설명
추가한 새로운 기능에 대한 간략한 설명을 작성하세요.

## 구현 내용
주요 구현 내용과 기술적 결정 사항을 설명하세요.

## 테스트
이 기능을 어떻게 테스트했는지 설명하세요.

## 스크린샷
UI 변경사항이 있는 경우 스크린샷을 첨부하세요.

## 관련 이슈
관련된 이슈 번호: #""",
        "bugfix": """## 버그 설명
수정한 버그에 대해 설명하세요.

## 원인
버그의 원인이 무엇이었는지 설명하세요.

## 해결 방법
문제를 어떻게 해결했는지 설명하세요.

## 테스트
수정 사항을 어떻게 테스트했는지 설명하세요.

## 관련 이슈
버그 리포트: #""",
        "refactor": """## 리팩토링 설명
어떤 부분을 리팩토링했는지 설명하세요.

## 변경 이유
이 리팩토링이 왜 필요했는지 설명하세요.

## 주요 변경 사항
리팩토링 중 이루어진 주요 변경 사항을 나열하세요.

## 테스트
리팩토링이 기존 기능을 손상시키지 않는지 어떻게 확인했는지 설명하세요.

## 성능 영향
이 변경으로 인한 성능 영향을 설명하세요.""",
        "docs": """## 문서 변경 사항
어떤 문서를 변경했는지 설명하세요.

## 변경 이유
이 변경이 왜 필요했는지 설명하세요.

## 주요 변경 내용
주요 문서 변경 사항을 나열하세요.""",
        "chore": """## 변경 사항
어떤 유지보수 작업을 수행했는지 설명하세요.

## 변경 이유
이 변경이 왜 필요했는지 설명하세요.

## 영향 범위
변경 사항의 영향 범위를 설명하세요(빌드 시스템, 의존성, 설정 파일 등).""",
        "test": """## 테스트 추가/수정 사항
어떤 테스트를 추가하거나 수정했는지 설명하세요.

## 테스트 범위
어떤 유형의 테스트가 추가되었는지 설명하세요(단위, 통합, E2E).

## 테스트 케이스
구현된 주요 테스트 케이스를 나열하세요.""",
    },
}


def _template_dir(root: Optional[Path]) -> Path:
    return (root or Path.cwd()) / TEMPLATE_DIR


def _validate_name(name: str) -> str:
    name = name.strip()
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise TemplateError(f"Invalid template name: '{name}'")
    return name


def load_template(name: str, language: Language = Language.EN, root: Optional[Path] = None) -> str:
    """Load a PR body template.

    Args:
        name: Template name without extension
        language: Language for built-in templates
        root: Repository root (defaults to the current directory)

    Returns:
        The custom template if present, else the built-in one for ``name``,
        else the built-in ``feature`` template

    Raises:
        TemplateError: If the name is invalid or the custom file cannot be read
    """
    name = _validate_name(name)
    path = _template_dir(root) / f"{name}.md"
    if path.is_file():
        logger.debug(f"Using custom template: {path}")
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateError(f"Failed to read template '{name}': {e}")

    templates = DEFAULT_TEMPLATES.get(Language(language).value, DEFAULT_TEMPLATES["en"])
    if name not in templates:
        logger.debug(f"No template named '{name}', using '{FALLBACK_TEMPLATE}'")
    return templates.get(name, templates[FALLBACK_TEMPLATE])


def list_templates(root: Optional[Path] = None) -> List[str]:
    """Names of the custom templates in the repository."""
    directory = _template_dir(root)
    if not directory.is_dir():
        return []
    return sorted(path.stem for path in directory.glob("*.md"))


def builtin_template_names() -> List[str]:
    return list(DEFAULT_TEMPLATES["en"])


def save_template(name: str, content: str, root: Optional[Path] = None) -> Path:
    """Write a custom template, replacing any existing one.

    Raises:
        TemplateError: If the name is invalid or the file cannot be written
    """
    name = _validate_name(name)
    directory = _template_dir(root)
    path = directory / f"{name}.md"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise TemplateError(f"Failed to save template '{name}': {e}")
    logger.info(f"Saved template: {path}")
    return path


def delete_template(name: str, root: Optional[Path] = None) -> bool:
    """Delete a custom template. Returns False if it does not exist."""
    name = _validate_name(name)
    path = _template_dir(root) / f"{name}.md"
    if not path.is_file():
        return False
    try:
        path.unlink()
    except OSError as e:
        raise TemplateError(f"Failed to delete template '{name}': {e}")
    logger.info(f"Deleted template: {path}")
    return True
