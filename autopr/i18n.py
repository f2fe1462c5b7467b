"""User-facing message catalog.

Messages are looked up by dotted key in the active language, then in
English, then the key itself is returned.
"""

from typing import Dict

from autopr.models import Language
from autopr.utils.logger import get_logger

logger = get_logger(__name__)

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "common.error": "Error",
        "common.yes": "yes",
        "common.no": "no",
        "common.none": "none",
        "common.cancelled": "Cancelled.",
        "common.not_git_repo": "Not inside a git repository with a GitHub origin remote.",
        # init
        "init.project_created": "Project configuration initialized: {path}",
        "init.global_created": "User configuration created: {path}",
        "init.token_saved": "GitHub token saved to user configuration.",
        "init.next_steps": "Next steps:",
        "init.step_token": "Store a GitHub token: autopr init --token <token>",
        "init.step_edit": "Edit .autopr.json to customize branch patterns and reviewers",
        "init.step_help": "Run autopr --help to see available commands",
        # new
        "new.protected_branch": "Cannot create a PR from '{branch}'. Switch to a feature branch first.",
        "new.no_pattern": "Branch '{branch}' does not match any branch pattern. No PR created.",
        "new.pattern_matched": "Matched pattern {pattern} (type: {type}, draft: {draft})",
        "new.pushing": "Pushing branch {branch} to origin...",
        "new.existing_pr": "An open PR already exists for {branch}: #{number}. Updating it.",
        "new.created": "Created PR #{number}: {url}",
        "new.updated": "Updated PR #{number}: {url}",
        "new.reviewers_requested": "Requested reviewers: {reviewers}",
        "new.reviewers_dropped": "Skipped non-collaborators: {reviewers}",
        "new.labels_added": "Added labels: {labels}",
        "new.draft_unavailable": "Draft PRs are not available for this repository; creating a ready PR.",
        "new.ai_title": "Generating PR title with AI...",
        "new.ai_description": "Generating PR description with AI...",
        "new.ai_review_posted": "AI review posted on PR #{number}.",
        "new.ai_failed": "AI generation failed, continuing without it: {error}",
        "new.no_commits": "No commits between {base} and {head}.",
        "new.base_modified": "The base branch was modified. Fetch, rebase, and try again.",
        # merge
        "merge.pr_info": "PR #{number}: {title}",
        "merge.pr_branches": "{head} -> {base}",
        "merge.pr_status": "Status: {status}",
        "merge.checking": "GitHub is still computing mergeability. Try again shortly.",
        "merge.not_mergeable": "PR #{number} is not mergeable (status: {status}).",
        "merge.conflicts_found": "PR #{number} has conflicts in {count} file(s):",
        "merge.conflict_file": "  - {filename}",
        "merge.conflict_markers": "  {filename}: {count} conflict block(s)",
        "merge.checkout_head": "Checked out {branch} locally to resolve conflicts.",
        "merge.resolution_steps": "To resolve on {head}:\n  1. Fix the conflicting files\n  2. git add <files> && git commit\n  3. git push\n  4. autopr merge {number}",
        "merge.ai_suggestions": "AI suggestions for resolving conflicts:",
        "merge.confirm": "Merge PR #{number} into {base} using {method}?",
        "merge.base_changed": "Changed base branch of PR #{number} to {base}.",
        "merge.merged": "Merged PR #{number}.",
        "merge.branch_deleted": "Deleted remote branch {branch}.",
        "merge.local_cleanup": "Switched to {branch} and pulled latest changes.",
        "merge.closed": "PR #{number} is not open.",
        "merge.no_local_conflicts": "No conflicts remain after merging origin/{base} into {head} locally. Push {head} to update the PR.",
        # post-checkout hook
        "hook.new_branch": "New branch {branch} is not on the remote yet.",
        "hook.push_instruction": "Run `git push -u origin {branch}` to open its PR automatically.",
        "hook.pr_created": "Created PR #{number} for {branch}: {url}",
        "hook.pr_exists": "PR #{number} already open for {branch}: {url}",
        "hook.failed": "autopr post-checkout hook failed: {error}",
        # device flow login
        "auth.client_id_required": "An OAuth app client ID is required. Pass --client-id or set github_client_id.",
        "auth.open_url": "Open {url} in your browser.",
        "auth.enter_code": "Enter the code: {code}",
        "auth.waiting": "Waiting for authorization (expires in {minutes} minutes)...",
        "auth.success": "Authenticated with GitHub. Token saved to the global config.",
        # list / update / reopen / review
        "list.empty": "No pull requests found.",
        "list.title": "Pull Requests ({state})",
        "update.nothing": "Nothing to update. Pass --title, --body, --base, --draft or --ready.",
        "update.done": "Updated PR #{number}.",
        "reopen.not_closed": "PR #{number} is already open.",
        "reopen.merged": "PR #{number} was merged and cannot be reopened.",
        "reopen.done": "Reopened PR #{number}.",
        "review.ai_disabled": "AI is not configured. Set ai.enabled and ai.base_url first.",
        "review.posted": "AI review posted on PR #{number}.",
        # reviewer groups
        "reviewer_group.added": "Reviewer group '{name}' added.",
        "reviewer_group.updated": "Reviewer group '{name}' updated.",
        "reviewer_group.removed": "Reviewer group '{name}' removed.",
        "reviewer_group.not_found": "Reviewer group '{name}' not found.",
        "reviewer_group.empty": "No reviewer groups configured.",
        "reviewer_group.nothing": "Nothing to update. Pass --members or --strategy.",
        # collaborators
        "collaborator.invited": "Invited {username} with {permission} permission.",
        "collaborator.removed": "Removed {username} from the repository.",
        "collaborator.empty": "No collaborators found.",
        "collaborator.no_invitation": "No invitation found for {username}.",
        "collaborator.no_invitations": "No pending invitations.",
        # commit
        "commit.no_changes": "No staged changes to commit.",
        "commit.improving": "Improving commit message with AI...",
        "commit.suggestion": "Suggested commit message:",
        "commit.confirm": "Use this commit message?",
        "commit.committed": "Committed.",
        "commit.analyzing": "Analyzing changes with AI...",
        "commit.invalid_subcommand": "Unknown subcommand '{subcommand}'. Only 'improve' is supported.",
        "commit.ai_required": "'commit improve' requires a configured AI backend.",
        "commit.no_message": "Commit message is empty.",
        "commit.pushed": "Pushed {branch}.",
        # daily report
        "report.title": "Daily report for {username} ({since} - {until})",
        "report.no_commits": "No commits found.",
        "report.total_commits": "Total commits",
        "report.files_changed": "Files changed",
        "report.additions": "Additions",
        "report.deletions": "Deletions",
        "report.branches": "Branches",
        "report.file_types": "File types",
        "report.hourly": "Commits by hour",
        "report.commits": "Commits",
        "report.summary": "Summary",
        "report.saved": "Report saved to {path}",
        # config / lang / template
        "config.set": "Set {key} = {value}",
        "lang.set": "Language set to {language}.",
        "lang.current": "Current language: {language}",
        "template.saved": "Template '{name}' saved to {path}",
        "template.deleted": "Template '{name}' deleted.",
        "template.not_found": "Template '{name}' not found.",
        "template.empty": "No custom templates found.",
        # default PR body
        "pr_body.changes": "## Changes",
        "pr_body.changes_placeholder": "- ",
        "pr_body.tests": "## Tests",
        "pr_body.unit_test": "- [ ] Unit tests added",
        "pr_body.integration_test": "- [ ] Integration tests added",
        "pr_body.reviewer_checklist": "## Reviewer Checklist",
        "pr_body.code_clarity": "- [ ] Code is clear and readable",
        "pr_body.test_coverage": "- [ ] Test coverage is sufficient",
        "pr_body.performance": "- [ ] No performance concerns",
    },
    "ko": {
        "common.error": "오류",
        "common.yes": "예",
        "common.no": "아니오",
        "common.none": "없음",
        "common.cancelled": "취소되었습니다.",
        "common.not_git_repo": "GitHub origin 원격 저장소가 있는 git 저장소가 아닙니다.",
        "init.project_created": "프로젝트 설정이 초기화되었습니다: {path}",
        "init.global_created": "사용자 설정이 생성되었습니다: {path}",
        "init.token_saved": "GitHub 토큰이 사용자 설정에 저장되었습니다.",
        "init.next_steps": "다음 단계:",
        "init.step_token": "GitHub 토큰 저장: autopr init --token <token>",
        "init.step_edit": ".autopr.json을 수정하여 브랜치 패턴과 리뷰어를 설정하세요",
        "init.step_help": "autopr --help 로 사용 가능한 명령을 확인하세요",
        "new.protected_branch": "'{branch}' 브랜치에서는 PR을 생성할 수 없습니다. 작업 브랜치로 전환하세요.",
        "new.no_pattern": "'{branch}' 브랜치와 일치하는 패턴이 없습니다. PR을 생성하지 않았습니다.",
        "new.pattern_matched": "패턴 {pattern} 일치 (타입: {type}, 초안: {draft})",
        "new.pushing": "{branch} 브랜치를 origin에 푸시하는 중...",
        "new.existing_pr": "{branch}에 대한 열린 PR이 이미 있습니다: #{number}. 업데이트합니다.",
        "new.created": "PR #{number} 생성됨: {url}",
        "new.updated": "PR #{number} 업데이트됨: {url}",
        "new.reviewers_requested": "리뷰어 요청: {reviewers}",
        "new.reviewers_dropped": "협업자가 아닌 사용자 제외: {reviewers}",
        "new.labels_added": "라벨 추가: {labels}",
        "new.draft_unavailable": "이 저장소에서는 초안 PR을 사용할 수 없어 일반 PR로 생성합니다.",
        "new.ai_title": "AI로 PR 제목 생성 중...",
        "new.ai_description": "AI로 PR 설명 생성 중...",
        "new.ai_review_posted": "PR #{number}에 AI 리뷰를 등록했습니다.",
        "new.ai_failed": "AI 생성에 실패하여 건너뜁니다: {error}",
        "new.no_commits": "{base}와 {head} 사이에 커밋이 없습니다.",
        "new.base_modified": "베이스 브랜치가 변경되었습니다. fetch와 rebase 후 다시 시도하세요.",
        "merge.pr_info": "PR #{number}: {title}",
        "merge.pr_branches": "{head} -> {base}",
        "merge.pr_status": "상태: {status}",
        "merge.checking": "GitHub가 병합 가능 여부를 계산 중입니다. 잠시 후 다시 시도하세요.",
        "merge.not_mergeable": "PR #{number}을(를) 병합할 수 없습니다 (상태: {status}).",
        "merge.conflicts_found": "PR #{number}의 {count}개 파일에 충돌이 있습니다:",
        "merge.conflict_file": "  - {filename}",
        "merge.conflict_markers": "  {filename}: 충돌 블록 {count}개",
        "merge.checkout_head": "충돌 해결을 위해 {branch} 브랜치를 체크아웃했습니다.",
        "merge.resolution_steps": "{head}에서 해결 방법:\n  1. 충돌 파일 수정\n  2. git add <files> && git commit\n  3. git push\n  4. autopr merge {number}",
        "merge.ai_suggestions": "AI 충돌 해결 제안:",
        "merge.confirm": "PR #{number}을(를) {method} 방식으로 {base}에 병합할까요?",
        "merge.base_changed": "PR #{number}의 베이스 브랜치를 {base}(으)로 변경했습니다.",
        "merge.merged": "PR #{number}을(를) 병합했습니다.",
        "merge.branch_deleted": "원격 브랜치 {branch}을(를) 삭제했습니다.",
        "merge.local_cleanup": "{branch}(으)로 전환하고 최신 변경 사항을 가져왔습니다.",
        "merge.closed": "PR #{number}이(가) 열려 있지 않습니다.",
        "merge.no_local_conflicts": "origin/{base}을(를) {head}에 로컬 병합한 뒤 남은 충돌이 없습니다. {head}을(를) 푸시하면 PR이 갱신됩니다.",
        # post-checkout hook
        "hook.new_branch": "새 브랜치 {branch}이(가) 아직 원격 저장소에 없습니다.",
        "hook.push_instruction": "`git push -u origin {branch}`로 푸시하면 PR이 자동으로 생성됩니다.",
        "hook.pr_created": "{branch}에 대한 PR #{number}을(를) 생성했습니다: {url}",
        "hook.pr_exists": "{branch}에 대한 PR #{number}이(가) 이미 열려 있습니다: {url}",
        "hook.failed": "autopr post-checkout 훅 실패: {error}",
        # device flow login
        "auth.client_id_required": "OAuth 앱 클라이언트 ID가 필요합니다. --client-id를 지정하거나 github_client_id를 설정하세요.",
        "auth.open_url": "브라우저에서 {url}을(를) 여세요.",
        "auth.enter_code": "코드를 입력하세요: {code}",
        "auth.waiting": "인증을 기다리는 중입니다 ({minutes}분 후 만료)...",
        "auth.success": "GitHub 인증이 완료되었습니다. 토큰을 전역 설정에 저장했습니다.",
        "list.empty": "PR이 없습니다.",
        "list.title": "Pull Requests ({state})",
        "update.nothing": "변경할 내용이 없습니다. --title, --body, --base, --draft 또는 --ready를 지정하세요.",
        "update.done": "PR #{number}을(를) 업데이트했습니다.",
        "reopen.not_closed": "PR #{number}은(는) 이미 열려 있습니다.",
        "reopen.merged": "PR #{number}은(는) 병합되어 다시 열 수 없습니다.",
        "reopen.done": "PR #{number}을(를) 다시 열었습니다.",
        "review.ai_disabled": "AI가 설정되지 않았습니다. ai.enabled와 ai.base_url을 먼저 설정하세요.",
        "review.posted": "PR #{number}에 AI 리뷰를 등록했습니다.",
        "reviewer_group.added": "리뷰어 그룹 '{name}'을(를) 추가했습니다.",
        "reviewer_group.updated": "리뷰어 그룹 '{name}'을(를) 수정했습니다.",
        "reviewer_group.removed": "리뷰어 그룹 '{name}'을(를) 삭제했습니다.",
        "reviewer_group.not_found": "리뷰어 그룹 '{name}'을(를) 찾을 수 없습니다.",
        "reviewer_group.empty": "설정된 리뷰어 그룹이 없습니다.",
        "reviewer_group.nothing": "변경할 내용이 없습니다. --members 또는 --strategy를 지정하세요.",
        "collaborator.invited": "{username}님을 {permission} 권한으로 초대했습니다.",
        "collaborator.removed": "{username}님을 저장소에서 제거했습니다.",
        "collaborator.empty": "협업자가 없습니다.",
        "collaborator.no_invitation": "{username}님에 대한 초대가 없습니다.",
        "collaborator.no_invitations": "대기 중인 초대가 없습니다.",
        "commit.no_changes": "커밋할 스테이징된 변경 사항이 없습니다.",
        "commit.improving": "AI로 커밋 메시지를 개선하는 중...",
        "commit.suggestion": "제안된 커밋 메시지:",
        "commit.confirm": "이 커밋 메시지를 사용할까요?",
        "commit.committed": "커밋했습니다.",
        "commit.analyzing": "AI로 변경 사항을 분석하는 중...",
        "commit.invalid_subcommand": "알 수 없는 하위 명령 '{subcommand}'. 'improve'만 지원합니다.",
        "commit.ai_required": "'commit improve'에는 AI 설정이 필요합니다.",
        "commit.no_message": "커밋 메시지가 비어 있습니다.",
        "commit.pushed": "{branch} 브랜치를 푸시했습니다.",
        "report.title": "{username}의 일일 보고서 ({since} - {until})",
        "report.no_commits": "커밋이 없습니다.",
        "report.total_commits": "전체 커밋",
        "report.files_changed": "변경된 파일",
        "report.additions": "추가",
        "report.deletions": "삭제",
        "report.branches": "브랜치",
        "report.file_types": "파일 유형",
        "report.hourly": "시간대별 커밋",
        "report.commits": "커밋",
        "report.summary": "요약",
        "report.saved": "보고서를 {path}에 저장했습니다",
        "config.set": "{key} = {value} 설정됨",
        "lang.set": "언어가 {language}(으)로 설정되었습니다.",
        "lang.current": "현재 언어: {language}",
        "template.saved": "템플릿 '{name}'을(를) {path}에 저장했습니다",
        "template.deleted": "템플릿 '{name}'을(를) 삭제했습니다.",
        "template.not_found": "템플릿 '{name}'을(를) 찾을 수 없습니다.",
        "template.empty": "사용자 정의 템플릿이 없습니다.",
        "pr_body.changes": "## 변경 사항",
        "pr_body.changes_placeholder": "- ",
        "pr_body.tests": "## 테스트",
        "pr_body.unit_test": "- [ ] 단위 테스트 추가",
        "pr_body.integration_test": "- [ ] 통합 테스트 추가",
        "pr_body.reviewer_checklist": "## 리뷰어 체크리스트",
        "pr_body.code_clarity": "- [ ] 코드가 명확하고 읽기 쉬운가",
        "pr_body.test_coverage": "- [ ] 테스트 커버리지가 충분한가",
        "pr_body.performance": "- [ ] 성능 문제가 없는가",
    },
}

_current_language = Language.EN


def set_language(language) -> None:
    """Switch the active message language."""
    global _current_language
    _current_language = Language(language)
    logger.debug(f"Message language set to {_current_language.value}")


def get_language() -> Language:
    return _current_language


def t(key: str, language=None, **kwargs) -> str:
    """Translate ``key`` and format it with ``kwargs``.

    Args:
        key: Dotted message key
        language: Language override (defaults to the active language)
        **kwargs: Format arguments

    Returns:
        Localized message, the English message, or the key itself
    """
    lang = Language(language).value if language is not None else _current_language.value
    message = MESSAGES.get(lang, {}).get(key)
    if message is None:
        message = MESSAGES["en"].get(key, key)
    if kwargs:
        try:
            return message.format(**kwargs)
        except (KeyError, IndexError):
            logger.debug(f"Missing format argument for message key: {key}")
            return message
    return message
