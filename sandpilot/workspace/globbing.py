"""
Glob 与忽略规则 - 将 glob 与 .gitignore 行编译为正则
Globbing and ignore rules - compile globs and .gitignore lines to regexes.

编译规则：先转义正则元字符，然后
``**/`` → 零个或多个目录，``**`` → 跨目录分隔符匹配，
``*`` → 单个路径段内匹配，``?`` → 段内单个字符。
Compilation: escape regex metacharacters, then ``**/`` → zero or more
directories, ``**`` → match across separators, ``*`` → match within one
segment, ``?`` → one character within a segment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# 没有忽略文件时使用的默认规则
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # 依赖缓存
    "node_modules/",
    "bower_components/",
    "__pycache__/",
    ".venv/",
    ".cache/",
    # 构建输出
    "dist/",
    "build/",
    "out/",
    ".next/",
    "coverage/",
    # 版本控制元数据
    ".git/",
    ".svn/",
    ".hg/",
    # 日志
    "logs/",
    "*.log",
    # 本地环境文件
    ".env",
    ".env.*",
)

_DOUBLE_STAR_SLASH = "\x00"
_DOUBLE_STAR = "\x01"


def glob_to_regex_body(pattern: str) -> str:
    """
    将 glob 转为未锚定的正则片段
    Translate a glob into an unanchored regex fragment.
    """
    escaped = re.escape(pattern)
    escaped = escaped.replace(r"\*\*/", _DOUBLE_STAR_SLASH)
    escaped = escaped.replace(r"\*\*", _DOUBLE_STAR)
    escaped = escaped.replace(r"\*", "[^/]*")
    escaped = escaped.replace(r"\?", "[^/]")
    escaped = escaped.replace(_DOUBLE_STAR_SLASH, "(?:.*/)?")
    return escaped.replace(_DOUBLE_STAR, ".*")


def compile_glob(pattern: str) -> re.Pattern[str]:
    """
    编译 glob，整个路径必须完全匹配
    Compile a glob; the whole path must match.
    """
    return re.compile(f"^{glob_to_regex_body(pattern)}$")


@dataclass(frozen=True)
class GitignoreRule:
    """
    单条忽略规则
    A single compiled ignore rule.
    """

    source: str
    regex: re.Pattern[str]
    # 匹配目录之下的所有路径
    beneath: re.Pattern[str]
    dir_only: bool = False
    negated: bool = False

    @classmethod
    def parse(cls, line: str) -> GitignoreRule | None:
        """
        解析忽略文件中的一行，空行和注释返回 None
        Parse one ignore-file line; blank lines and comments give None.
        """
        text = line.strip()
        if not text or text.startswith("#"):
            return None

        negated = text.startswith("!")
        if negated:
            text = text[1:]
        dir_only = text.endswith("/")
        text = text.rstrip("/")
        anchored = text.startswith("/")
        text = text.lstrip("/")
        if not text:
            return None

        prefix = "^" if anchored else "^(?:.*/)?"
        body = glob_to_regex_body(text)
        return cls(
            source=line.strip(),
            regex=re.compile(f"{prefix}{body}$"),
            beneath=re.compile(f"{prefix}{body}/.*$"),
            dir_only=dir_only,
            negated=negated,
        )

    def matches(self, path: str, is_dir: bool) -> bool:
        """判断相对路径是否命中规则 / Whether a relative path hits this rule."""
        if self.beneath.match(path):
            return True
        if self.regex.match(path):
            return is_dir or not self.dir_only
        return False


class IgnoreMatcher:
    """
    忽略匹配器 - 按顺序应用规则，最后命中的规则生效
    Ignore matcher - applies rules in order; the last hit wins.
    """

    def __init__(self, rules: list[GitignoreRule]) -> None:
        self._rules = rules

    @classmethod
    def from_lines(cls, lines: list[str]) -> IgnoreMatcher:
        rules = [rule for rule in map(GitignoreRule.parse, lines) if rule is not None]
        return cls(rules)

    @classmethod
    def from_text(cls, text: str) -> IgnoreMatcher:
        return cls.from_lines(text.splitlines())

    @classmethod
    def defaults(cls) -> IgnoreMatcher:
        """默认规则集 / The fixed default rule set."""
        return cls.from_lines(list(DEFAULT_IGNORE_PATTERNS))

    @property
    def rules(self) -> list[GitignoreRule]:
        return list(self._rules)

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        ignored = False
        for rule in self._rules:
            if rule.matches(path, is_dir):
                ignored = not rule.negated
        return ignored
