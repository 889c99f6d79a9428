"""Corpus loader for skills and their rule files.

A corpus is a directory of skill folders. Each skill folder contains a
SKILL.md file with YAML frontmatter and a rules/ directory of markdown rule
files, each with its own frontmatter:

    <corpus>/
      registry.yaml                 (optional: enabled flags, extra triggers)
      react-best-practices/
        SKILL.md
        rules/
          async-parallel.md
          bundle-barrel-imports.md

Example SKILL.md frontmatter:

    ---
    name: react-best-practices
    description: >
      React performance guidelines. Triggers on tasks involving
      React components, Next.js pages, data fetching, or bundle size.
    triggers: [react, next.js, "server components"]
    categories:
      - {name: Eliminating Waterfalls, priority: CRITICAL, prefix: async-}
      - {name: Bundle Size, priority: CRITICAL, prefix: bundle-}
    ---

Example rule frontmatter:

    ---
    title: Promise.all() for Independent Operations
    priority: CRITICAL        # "impact" is accepted as an alias
    category: Eliminating Waterfalls
    tags: [async, promises, waterfalls]
    ---

Problems with individual skills or rules never abort the load: the offending
unit is skipped (or kept, for soft issues) and a LoadDiagnostic is recorded.
Only an empty result is fatal.
"""

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import frontmatter
import yaml

from ..observability import metrics
from .errors import CorpusLoadError
from .index import CorpusIndex
from .models import CategorySpec, LoadDiagnostic, Priority, Rule, Skill
from .text import normalize_term, normalize_terms, normalize_text

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"
RULES_DIR = "rules"
REGISTRY_FILE = "registry.yaml"

# Characters per token for the "tokens" size unit
CHARS_PER_TOKEN = 4

# Errors that make a single frontmatter file unusable
_PARSE_ERRORS = (yaml.YAMLError, TypeError, ValueError, UnicodeDecodeError, OSError)

_QUOTED_RE = re.compile(r"[\"“]([^\"“”]+)[\"”]")
_MARKER_RE = re.compile(
    r"\b(?:triggers?\s+on|use\s+(?:it\s+)?when|use\s+for|applies\s+to|activates?\s+(?:on|for))"
    r"\s*:?\s*(.+?)(?=\.\s|\.$|$)",
    re.IGNORECASE | re.DOTALL,
)
_CLAUSE_SPLIT_RE = re.compile(r",|;|/|\bor\b|\band\b", re.IGNORECASE)
_LEAD_FILLER_RE = re.compile(
    r"^\s*(?:tasks?|work(?:ing)?|writing|reviewing|refactoring|building)"
    r"(?:\s+(?:involving|with|on|for|that\s+involve))?(?:\s+|$)",
    re.IGNORECASE,
)

# Marker-clause pieces longer than this are too specific to act as triggers
MAX_MARKER_TERM_TOKENS = 3


def estimate_size(text: str, unit: str = "tokens") -> int:
    """Estimate the cost of a rule body in the given unit (minimum 1)."""
    length = len(text or "")
    if unit == "chars":
        return max(1, length)
    return max(1, math.ceil(length / CHARS_PER_TOKEN))


def extract_trigger_terms(
    description: str,
    explicit: list[str],
    stopwords: Optional[frozenset] = None,
) -> frozenset:
    """Build a skill's trigger terms.

    Sources, unioned:
      - the explicit ``triggers`` list
      - phrases quoted in the description
      - short phrases following a "Triggers on" / "Use when" marker

    If all of these are empty, the description's content tokens are used
    so that a skill without trigger metadata is still reachable.
    """
    terms = set(normalize_terms(explicit, stopwords))

    description = description or ""
    terms |= normalize_terms(_QUOTED_RE.findall(description), stopwords)

    for clause in _MARKER_RE.findall(description):
        for piece in _CLAUSE_SPLIT_RE.split(clause):
            piece = _LEAD_FILLER_RE.sub("", piece)
            normalized = normalize_term(piece, stopwords)
            if normalized and len(normalized.split(" ")) <= MAX_MARKER_TERM_TOKENS:
                terms.add(normalized)

    if not terms:
        terms = set(normalize_text(description, stopwords))

    return frozenset(terms)


def _as_list(value: Any) -> list:
    """Coerce a frontmatter value that may be a scalar, CSV string or list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


@dataclass(frozen=True)
class DeclaredRule:
    """Entry of a skill's declared rule table."""

    id: str
    priority: Optional[Priority] = None
    category: str = ""


@dataclass
class RegistryEntry:
    """Entry in the optional corpus registry.yaml."""

    name: str
    enabled: bool = True
    triggers: tuple = ()


class CorpusLoader:
    """Loads a corpus directory into an immutable CorpusIndex."""

    def __init__(
        self,
        corpus_dir: Path,
        size_unit: str = "tokens",
        stopwords: Optional[frozenset] = None,
    ):
        """Initialize the corpus loader.

        Args:
            corpus_dir: Root directory containing skill folders
            size_unit: "tokens" or "chars" for computed rule sizes
            stopwords: Stopwords used to normalize trigger terms and tags
        """
        self.corpus_dir = Path(corpus_dir)
        self.size_unit = size_unit
        self.stopwords = stopwords
        self._diagnostics: list[LoadDiagnostic] = []

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def load(self) -> CorpusIndex:
        """Load every skill under the corpus directory.

        Returns:
            A new CorpusIndex snapshot

        Raises:
            CorpusLoadError: If the directory is unreadable or no valid skill remains
        """
        self._diagnostics = []

        if not self.corpus_dir.is_dir():
            raise CorpusLoadError(f"Corpus directory not found: {self.corpus_dir}")

        registry = self._load_registry()
        skills: list[Skill] = []
        seen: dict[str, Path] = {}

        for skill_dir in sorted(self.corpus_dir.iterdir()):
            if not skill_dir.is_dir() or skill_dir.name.startswith((".", "_")):
                continue
            if not (skill_dir / SKILL_FILE).is_file():
                logger.debug(f"Skipping {skill_dir}: no {SKILL_FILE}")
                continue

            skill = self._load_skill(skill_dir, registry)
            if skill is None:
                continue

            if skill.id in seen:
                self._add(
                    "warning", "duplicate_skill",
                    f"Skill id '{skill.id}' already loaded from {seen[skill.id]}",
                    path=skill_dir, skill_id=skill.id,
                )
                continue

            seen[skill.id] = skill_dir
            skills.append(skill)

        for name in sorted(set(registry) - set(seen)):
            self._add(
                "warning", "unknown_registry_skill",
                f"{REGISTRY_FILE} lists '{name}' but no such skill was loaded",
                path=self.corpus_dir / REGISTRY_FILE, skill_id=name,
            )

        diagnostics = tuple(self._diagnostics)
        for diagnostic in diagnostics:
            metrics.increment("corpus_diagnostic_total", labels={"code": diagnostic.code})

        index = CorpusIndex(skills, diagnostics=diagnostics, source=self.corpus_dir)
        metrics.increment("corpus_load_total")
        logger.info(
            f"Loaded {len(index)} skills ({index.rule_count} rules, "
            f"{len(diagnostics)} diagnostics) from {self.corpus_dir}"
        )
        return index

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _add(
        self,
        level: str,
        code: str,
        message: str,
        path: Optional[Path] = None,
        skill_id: str = "",
        rule_id: str = "",
    ) -> None:
        diagnostic = LoadDiagnostic(
            level=level,
            code=code,
            message=message,
            path=str(path) if path else "",
            skill_id=skill_id,
            rule_id=rule_id,
        )
        self._diagnostics.append(diagnostic)
        if level == "error":
            logger.error(f"[{code}] {message}")
        else:
            logger.warning(f"[{code}] {message}")

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def _load_registry(self) -> dict[str, RegistryEntry]:
        """Load the optional registry.yaml at the corpus root."""
        registry_path = self.corpus_dir / REGISTRY_FILE
        if not registry_path.exists():
            return {}

        try:
            content = yaml.safe_load(registry_path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError, UnicodeDecodeError) as e:
            self._add("warning", "invalid_registry", f"Failed to parse registry: {e}", path=registry_path)
            return {}

        if not isinstance(content, dict) or not isinstance(content.get("skills", []), list):
            self._add("warning", "invalid_registry", "Empty or invalid registry format", path=registry_path)
            return {}

        entries: dict[str, RegistryEntry] = {}
        for skill_data in content.get("skills") or []:
            if not isinstance(skill_data, dict) or not skill_data.get("name"):
                self._add("warning", "invalid_registry", f"Registry entry without name: {skill_data!r}", path=registry_path)
                continue
            entry = RegistryEntry(
                name=str(skill_data["name"]).strip(),
                enabled=bool(skill_data.get("enabled", True)),
                triggers=tuple(_as_list(skill_data.get("triggers"))),
            )
            entries[entry.name] = entry
            logger.debug(f"Registry entry: {entry.name} (enabled={entry.enabled})")
        return entries

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------

    def _load_skill(self, skill_dir: Path, registry: dict[str, RegistryEntry]) -> Optional[Skill]:
        """Parse one skill folder. Returns None if the descriptor is unusable."""
        skill_md_path = skill_dir / SKILL_FILE

        try:
            post = frontmatter.load(str(skill_md_path))
        except _PARSE_ERRORS as e:
            self._add("error", "invalid_frontmatter", f"Invalid YAML frontmatter in {skill_md_path}: {e}", path=skill_md_path)
            return None

        meta = post.metadata
        if not meta:
            self._add("error", "missing_frontmatter", f"Invalid {SKILL_FILE} format (no frontmatter): {skill_md_path}", path=skill_md_path)
            return None

        skill_id = str(meta.get("name") or "").strip()
        if not skill_id:
            skill_id = skill_dir.name
            self._add(
                "warning", "missing_name",
                f"Missing 'name' in frontmatter, using directory name '{skill_id}'",
                path=skill_md_path, skill_id=skill_id,
            )

        description = meta.get("description")
        if not description:
            self._add("warning", "missing_description", f"Missing 'description' for skill '{skill_id}'", path=skill_md_path, skill_id=skill_id)
            description = ""
        description = " ".join(str(description).split())

        entry = registry.get(skill_id) or registry.get(skill_dir.name)
        enabled = bool(meta.get("enabled", True))
        triggers = _as_list(meta.get("triggers"))
        if entry is not None:
            enabled = entry.enabled
            triggers.extend(entry.triggers)

        categories = self._parse_categories(meta.get("categories"), skill_id, skill_md_path)
        declared = self._parse_declared_rules(meta.get("rules"), skill_id, skill_md_path)
        rules = self._load_rules(skill_id, skill_dir, categories, declared)

        if not rules:
            self._add("warning", "empty_skill", f"Skill '{skill_id}' has no loadable rules", path=skill_dir, skill_id=skill_id)

        return Skill(
            id=skill_id,
            description=description,
            trigger_terms=extract_trigger_terms(description, triggers, self.stopwords),
            rules=tuple(rules),
            categories=tuple(categories),
            enabled=enabled,
            path=skill_dir,
        )

    def _parse_categories(self, raw: Any, skill_id: str, path: Path) -> list[CategorySpec]:
        """Parse the declared category table.

        Accepts a list of ``{name, priority|impact, prefix}`` mappings, or a
        mapping of ``name -> priority`` / ``name -> {priority, prefix}``.
        """
        if not raw:
            return []

        if isinstance(raw, dict):
            items = []
            for name, value in raw.items():
                if isinstance(value, dict):
                    items.append({"name": name, **value})
                else:
                    items.append({"name": name, "priority": value})
        elif isinstance(raw, list):
            items = raw
        else:
            self._add("warning", "invalid_category", f"Unsupported categories format in skill '{skill_id}'", path=path, skill_id=skill_id)
            return []

        categories: list[CategorySpec] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("name"):
                self._add("warning", "invalid_category", f"Category entry without name: {item!r}", path=path, skill_id=skill_id)
                continue
            raw_priority = item.get("priority", item.get("impact"))
            try:
                priority = Priority.parse(raw_priority)
            except ValueError:
                self._add(
                    "warning", "invalid_category",
                    f"Category '{item['name']}' has invalid priority {raw_priority!r}",
                    path=path, skill_id=skill_id,
                )
                continue
            categories.append(CategorySpec(
                name=str(item["name"]).strip(),
                priority=priority,
                prefix=str(item.get("prefix") or "").strip(),
            ))
        return categories

    def _parse_declared_rules(self, raw: Any, skill_id: str, path: Path) -> Optional[dict[str, DeclaredRule]]:
        """Parse the skill's declared rule table, or None when absent."""
        if raw is None:
            return None

        declared: dict[str, DeclaredRule] = {}

        def _add_entry(rule_id: Any, value: Any) -> None:
            rule_id = str(rule_id or "").strip()
            if not rule_id:
                self._add("warning", "invalid_rule_table", f"Rule table entry without id in skill '{skill_id}'", path=path, skill_id=skill_id)
                return
            priority = None
            category = ""
            if isinstance(value, dict):
                raw_priority = value.get("priority", value.get("impact"))
                category = str(value.get("category") or "").strip()
            else:
                raw_priority = value
            if raw_priority is not None:
                try:
                    priority = Priority.parse(raw_priority)
                except ValueError:
                    self._add(
                        "warning", "invalid_rule_table",
                        f"Rule table entry '{rule_id}' has invalid priority {raw_priority!r}",
                        path=path, skill_id=skill_id, rule_id=rule_id,
                    )
            declared[rule_id] = DeclaredRule(id=rule_id, priority=priority, category=category)

        if isinstance(raw, dict):
            for rule_id, value in raw.items():
                _add_entry(rule_id, value)
        elif isinstance(raw, list):
            for item in raw:
                if isinstance(item, dict):
                    _add_entry(item.get("id"), item)
                else:
                    _add_entry(item, None)
        else:
            self._add("warning", "invalid_rule_table", f"Unsupported rules format in skill '{skill_id}'", path=path, skill_id=skill_id)
            return None

        return declared

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _load_rules(
        self,
        skill_id: str,
        skill_dir: Path,
        categories: list[CategorySpec],
        declared: Optional[dict[str, DeclaredRule]],
    ) -> list[Rule]:
        """Load the rule files of one skill.

        With a declared table, rules follow the table's order and files not in
        the table are skipped. Without one, every rules/*.md file (except
        ``_``-prefixed section files) is loaded in file-name order.
        """
        rules_dir = skill_dir / RULES_DIR
        parsed: dict[str, tuple[Path, frontmatter.Post]] = {}

        paths = sorted(rules_dir.glob("*.md")) if rules_dir.is_dir() else []
        for rule_path in paths:
            if rule_path.name.startswith("_"):
                continue
            try:
                post = frontmatter.load(str(rule_path))
            except _PARSE_ERRORS as e:
                self._add(
                    "error", "invalid_frontmatter", f"Invalid rule file {rule_path}: {e}",
                    path=rule_path, skill_id=skill_id, rule_id=rule_path.stem,
                )
                continue

            rule_id = str(post.metadata.get("id") or rule_path.stem).strip()
            if rule_id in parsed:
                self._add(
                    "warning", "duplicate_rule",
                    f"Rule id '{rule_id}' already defined by {parsed[rule_id][0]}",
                    path=rule_path, skill_id=skill_id, rule_id=rule_id,
                )
                continue
            parsed[rule_id] = (rule_path, post)

        if declared is None:
            order = list(parsed)
        else:
            order = []
            for rule_id in declared:
                if rule_id in parsed:
                    order.append(rule_id)
                else:
                    self._add(
                        "warning", "missing_rule_file",
                        f"Skill '{skill_id}' declares rule '{rule_id}' but no readable rule file exists",
                        path=rules_dir, skill_id=skill_id, rule_id=rule_id,
                    )
            for rule_id in parsed:
                if rule_id not in declared:
                    self._add(
                        "warning", "undeclared_rule_file",
                        f"Rule file for '{rule_id}' is not in the rule table of skill '{skill_id}'",
                        path=parsed[rule_id][0], skill_id=skill_id, rule_id=rule_id,
                    )

        rules = []
        for rule_id in order:
            rule_path, post = parsed[rule_id]
            declared_entry = declared.get(rule_id) if declared else None
            rule = self._build_rule(skill_id, rule_id, rule_path, post, categories, declared_entry)
            if rule is not None:
                rules.append(rule)
        return rules

    def _build_rule(
        self,
        skill_id: str,
        rule_id: str,
        rule_path: Path,
        post: frontmatter.Post,
        categories: list[CategorySpec],
        declared_entry: Optional[DeclaredRule],
    ) -> Optional[Rule]:
        """Validate one rule's metadata and build the Rule."""
        meta = post.metadata

        raw_priority = meta.get("priority", meta.get("impact"))
        if raw_priority is None:
            self._add(
                "error", "missing_priority", f"Rule '{skill_id}/{rule_id}' has no priority",
                path=rule_path, skill_id=skill_id, rule_id=rule_id,
            )
            return None
        try:
            priority = Priority.parse(raw_priority)
        except ValueError:
            self._add(
                "error", "invalid_priority", f"Rule '{skill_id}/{rule_id}' has invalid priority {raw_priority!r}",
                path=rule_path, skill_id=skill_id, rule_id=rule_id,
            )
            return None

        category = str(meta.get("category") or "").strip()
        if not category and declared_entry is not None:
            category = declared_entry.category
        if not category:
            for spec in categories:
                if spec.prefix and rule_id.startswith(spec.prefix):
                    category = spec.name
                    break

        if declared_entry is not None and declared_entry.priority and declared_entry.priority != priority:
            self._add(
                "warning", "priority_mismatch",
                f"Rule '{skill_id}/{rule_id}' is {priority.value} but the rule table says {declared_entry.priority.value}",
                path=rule_path, skill_id=skill_id, rule_id=rule_id,
            )

        if categories and category:
            spec = next((c for c in categories if c.name.lower() == category.lower()), None)
            if spec is None:
                self._add(
                    "warning", "unknown_category",
                    f"Rule '{skill_id}/{rule_id}' uses undeclared category '{category}'",
                    path=rule_path, skill_id=skill_id, rule_id=rule_id,
                )
            elif spec.priority != priority:
                self._add(
                    "warning", "category_priority_mismatch",
                    f"Rule '{skill_id}/{rule_id}' is {priority.value} but category "
                    f"'{spec.name}' is declared {spec.priority.value}",
                    path=rule_path, skill_id=skill_id, rule_id=rule_id,
                )

        body = post.content
        raw_size = meta.get("size")
        if raw_size is None:
            size = estimate_size(body, self.size_unit)
        else:
            try:
                if isinstance(raw_size, bool):
                    raise ValueError(raw_size)
                size = int(raw_size)
            except (TypeError, ValueError):
                size = 0
            if size < 1:
                self._add(
                    "error", "invalid_size", f"Rule '{skill_id}/{rule_id}' has invalid size {raw_size!r}",
                    path=rule_path, skill_id=skill_id, rule_id=rule_id,
                )
                return None

        return Rule(
            id=rule_id,
            skill_id=skill_id,
            priority=priority,
            size_estimate=size,
            body=body,
            category=category,
            tags=normalize_terms(_as_list(meta.get("tags")), self.stopwords),
            title=str(meta.get("title") or "").strip(),
        )


def load_corpus(
    corpus_dir: Path,
    size_unit: str = "tokens",
    stopwords: Optional[frozenset] = None,
) -> CorpusIndex:
    """Convenience wrapper around CorpusLoader.load()."""
    return CorpusLoader(corpus_dir, size_unit=size_unit, stopwords=stopwords).load()
