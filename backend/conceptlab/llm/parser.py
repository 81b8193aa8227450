import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from conceptlab.ir.graph import Category, Connection, ConceptGraph, ThesisGenerationParams
from conceptlab.ir.results import (
    CompatibilityAnalysis,
    CompatibilityElement,
    CriticalAnalysis,
    DerivedFrom,
    DimensionScore,
    DraftCategory,
    DraftConnection,
    EnrichmentResult,
    Issue,
    PotentialIssue,
    Suggestion,
    SynthesisDraft,
    SynthesisStrategy,
    TextResult,
    ThesisDevelopment,
    ThesisDraft,
    ValidationResult,
)
from conceptlab.pipeline.resolver import DEFAULT_RESOLVER, NameResolver
from conceptlab.utils.json_extract import extract_json_block

logger = logging.getLogger(__name__)

# ============================================================
# LLM TRUST BOUNDARY
#
# Every parser here is a pure function text -> result.
# None of them may raise on malformed input: a reply that does not
# follow the requested format is normal, and yields a partly empty
# result plus a "[Parser]" warning.
#
# Markers are Russian (the language the templates ask the model to
# answer in); English aliases are accepted as well.
# ============================================================


# ============================================================
# SHARED GRAMMAR
# ============================================================

_HEADING = re.compile(r"^[ \t]*(#{1,6})[ \t]+(.+?)[ \t#]*$", re.MULTILINE)
_BULLET_SPLIT = re.compile(r"(?:^|\n)[ \t]*[-*•][ \t]+")
# top-level only: column 0, optionally behind "#" or "**"
_NUMBERED_SECTION_SPLIT = re.compile(r"(?m)^(?:#{1,6}[ \t]*)?\**[ \t]*\d+\.[ \t]+")

LOW_SEVERITY_MARKERS = ("minor", "slight", "незначительный", "небольшой")
HIGH_SEVERITY_MARKERS = ("critical", "severe", "major", "критический", "серьезный", "серьёзный")

SUGGESTION_MARKERS = (
    ("add_category", ("добавить категорию", "add category")),
    ("add_connection", ("добавить связь", "add connection")),
    ("modify_category", ("изменить категорию", "modify category")),
)
DEFAULT_SUGGESTION = "modify_connection"

AFFIRMATIVE = "да"


def _degraded(parser: str, reason: str) -> None:
    logger.warning("[Parser] %s: %s", parser, reason)


def _normalize_title(title: str) -> str:
    return title.strip().strip("*_").strip().casefold()


def headed_blocks(text: str, level: int) -> List[Tuple[str, str]]:
    """
    All headings of exactly ``level`` ('#' count) as (title, body) pairs.
    A body runs until the next heading of the same or a higher level.
    """
    matches = list(_HEADING.finditer(text or ""))
    blocks = []
    for i, m in enumerate(matches):
        if len(m.group(1)) != level:
            continue
        end = len(text)
        for nxt in matches[i + 1:]:
            if len(nxt.group(1)) <= level:
                end = nxt.start()
                break
        blocks.append((m.group(2).strip(), text[m.end():end].strip()))
    return blocks


def find_section(text: str, aliases: Sequence[str], level: int = 2) -> Optional[str]:
    """
    Body of the first ``level`` heading whose title starts with one of
    ``aliases``. Anything after the alias on the heading line (": 0.8 / 1",
    ": Name") is kept as the first line of the body.
    """
    wanted = [a.casefold() for a in aliases]
    for title, body in headed_blocks(text, level):
        norm = _normalize_title(title)
        for alias in wanted:
            if norm.startswith(alias):
                rest = title.strip().strip("*_").strip()[len(alias):]
                rest = rest.strip().lstrip(":—-").strip().strip("*_").strip()
                if rest:
                    return f"{rest}\n{body}".strip()
                return body
    return None


def bullets(text: Optional[str]) -> List[str]:
    """Items of a '-', '*' or '•' bullet list; text before the first bullet is ignored."""
    if not text:
        return []
    parts = _BULLET_SPLIT.split(text)
    return [p.strip() for p in parts[1:] if p.strip()]


def _label_pattern(aliases: Sequence[str]) -> re.Pattern:
    names = "|".join(re.escape(a) for a in aliases)
    # Label:, **Label:**, **Label**:
    return re.compile(rf"\*{{0,2}}(?:{names})\*{{0,2}}[ \t]*:\*{{0,2}}[ \t]*", re.IGNORECASE)


def labeled_fields(text: str, labels: Dict[str, Sequence[str]]) -> Dict[str, str]:
    """
    Slice ``text`` by fixed labels. Each field runs from the end of its
    label to the start of the next label found, or to the end of text.
    Missing labels are absent from the result.
    """
    found = []
    for key, aliases in labels.items():
        m = _label_pattern(aliases).search(text or "")
        if m:
            found.append((m.start(), m.end(), key))
    found.sort()

    fields = {}
    for i, (_, end, key) in enumerate(found):
        stop = found[i + 1][0] if i + 1 < len(found) else len(text)
        fields[key] = text[end:stop].strip()
    return fields


def text_after_label(text: str, aliases: Sequence[str]) -> Optional[str]:
    m = _label_pattern(aliases).search(text or "")
    if not m:
        return None
    return text[m.end():].strip()


def determine_severity(text: str) -> str:
    lowered = (text or "").casefold()
    if any(word in lowered for word in HIGH_SEVERITY_MARKERS):
        return "high"
    if any(word in lowered for word in LOW_SEVERITY_MARKERS):
        return "low"
    return "medium"


def determine_suggestion_type(text: str) -> str:
    lowered = (text or "").casefold()
    for kind, markers in SUGGESTION_MARKERS:
        if any(marker in lowered for marker in markers):
            return kind
    return DEFAULT_SUGGESTION


def _str_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


# ============================================================
# GRAPH VALIDATION
# ============================================================

def _validation_from_json(data: dict) -> ValidationResult:
    def issues(key: str, issue_type: str) -> List[Issue]:
        out = []
        for item in data.get(key) or []:
            if isinstance(item, str):
                out.append(Issue(issue_type, item, determine_severity(item)))
            elif isinstance(item, dict) and item.get("description"):
                severity = item.get("severity")
                if severity not in ("low", "medium", "high"):
                    severity = determine_severity(item["description"])
                out.append(Issue(issue_type, str(item["description"]), severity))
        return out

    suggestions = []
    for item in data.get("improvement_suggestions") or []:
        if isinstance(item, str):
            suggestions.append(Suggestion(determine_suggestion_type(item), item))
        elif isinstance(item, dict) and item.get("description"):
            kind = item.get("suggestion_type")
            if kind not in ("add_category", "add_connection", "modify_category", "modify_connection"):
                kind = determine_suggestion_type(item["description"])
            suggestions.append(Suggestion(kind, str(item["description"])))

    return ValidationResult(
        general_analysis=str(data.get("general_analysis", "")),
        contradictions=issues("contradictions", "contradiction"),
        missing_elements=issues("missing_elements", "missing_element"),
        improvement_suggestions=suggestions,
    )


def _plain_head(section: str) -> str:
    head, sep, rest = section.partition("\n")
    return (head.replace("**", "").rstrip() + sep + rest).strip()


def parse_validation(text: str) -> ValidationResult:
    """
    Expected shape: four numbered sections
    1. general analysis  2. contradictions  3. missing elements  4. suggestions
    """
    text = text or ""

    data = extract_json_block(text)
    if "general_analysis" in data:
        return _validation_from_json(data)

    sections = _NUMBERED_SECTION_SPLIT.split(text)[1:]
    if len(sections) < 4:
        _degraded("validation", f"expected 4 numbered sections, found {len(sections)}")
        return ValidationResult(general_analysis=text)

    general, contradictions, missing, suggestions = (_plain_head(s) for s in sections[:4])

    return ValidationResult(
        general_analysis=general,
        contradictions=[
            Issue("contradiction", item, determine_severity(item))
            for item in bullets(contradictions)
        ],
        missing_elements=[
            Issue("missing_element", item, determine_severity(item))
            for item in bullets(missing)
        ],
        improvement_suggestions=[
            Suggestion(determine_suggestion_type(item), item)
            for item in bullets(suggestions)
        ],
    )


# ============================================================
# ENRICHMENT
# ============================================================

CATEGORY_ENRICHMENT_SECTIONS = {
    "extended_description": ("Расширенное описание", "Extended description"),
    "alternative_interpretations": ("Альтернативные трактовки", "Alternative interpretations"),
    "historical_analogs": ("Исторические аналоги", "Historical analogs", "Historical analogues"),
    "related_concepts": ("Связанные концепты", "Related concepts"),
}

CONNECTION_ENRICHMENT_SECTIONS = {
    "extended_description": ("Философское обоснование", "Philosophical basis", "Philosophical justification"),
    "alternative_interpretations": ("Возможные контраргументы", "Possible counterarguments", "Counterarguments"),
    "historical_analogs": ("Аналогичные связи", "Analogous connections", "Similar connections"),
}


def parse_enrichment(text: str, kind: str = "category") -> EnrichmentResult:
    """``kind`` is 'category' or 'connection'; they use different headings."""
    text = text or ""

    data = extract_json_block(text)
    if "extended_description" in data:
        return EnrichmentResult(
            extended_description=str(data.get("extended_description", "")),
            alternative_interpretations=_str_list(data.get("alternative_interpretations")),
            historical_analogs=_str_list(data.get("historical_analogs")),
            related_concepts=_str_list(data.get("related_concepts")),
        )

    layout = CONNECTION_ENRICHMENT_SECTIONS if kind == "connection" else CATEGORY_ENRICHMENT_SECTIONS

    description = find_section(text, layout["extended_description"])
    if description is None:
        _degraded(f"{kind} enrichment", "first heading missing, keeping whole reply")
        return EnrichmentResult(extended_description=text)

    result = EnrichmentResult(extended_description=description)
    for field_name, aliases in layout.items():
        if field_name == "extended_description":
            continue
        setattr(result, field_name, bullets(find_section(text, aliases)))
    return result


# ============================================================
# THESES
# ============================================================

_THESIS = re.compile(
    r"^[ \t]*\d+\.[ \t]+(.+?)"
    r"(?:\n\s*-\s*(?:Источники|Источник|Sources|Source):\s*(.+?))?"
    r"(?:\n\s*-\s*(?:Обоснование|Justification):\s*(.+?))?"
    r"(?=\n\s*\d+\.|$)",
    re.MULTILINE | re.DOTALL | re.IGNORECASE,
)


def parse_theses(
    text: str,
    graph: ConceptGraph,
    params: Optional[ThesisGenerationParams] = None,
    resolver: NameResolver = DEFAULT_RESOLVER,
) -> List[ThesisDraft]:
    """
    Numbered theses, each optionally followed by
        - Источник: <category>, <category>
        - Обоснование: <text>
    Source names that do not resolve to a graph category are dropped.
    """
    params = params or ThesisGenerationParams()
    candidates = [(c.category_id, c.name) for c in graph.categories]

    theses = []
    for m in _THESIS.finditer(text or ""):
        thesis_text = m.group(1).strip()
        if not thesis_text:
            continue
        sources = m.group(2) or ""

        category_ids = []
        for name in re.split(r"[,;]\s*", sources.strip()):
            resolved = resolver.resolve(name, candidates)
            if resolved and resolved not in category_ids:
                category_ids.append(resolved)

        theses.append(
            ThesisDraft(
                text=thesis_text,
                derived_from=DerivedFrom(categories=category_ids, connections=[]),
                type=params.type,
                style=params.style,
                used_weights=params.use_weights,
                justification=(m.group(3) or "").strip(),
                concept_id=graph.concept_id,
            )
        )

    if not theses:
        _degraded("theses", "no numbered theses found")
    return theses


THESIS_DEVELOPMENT_SECTIONS = {
    "justification": ("Философское обоснование", "Philosophical justification"),
    "counterarguments": ("Возможные контраргументы", "Possible counterarguments"),
    "historical_analogs": ("Исторические аналоги", "Historical analogs"),
    "practical_implications": ("Практические следствия", "Practical implications"),
}


def parse_thesis_development(text: str, thesis_text: str = "") -> ThesisDevelopment:
    text = text or ""
    result = ThesisDevelopment(text=thesis_text)
    for field_name, aliases in THESIS_DEVELOPMENT_SECTIONS.items():
        body = find_section(text, aliases)
        if body is not None:
            setattr(result, field_name, body)
    if not result.justification:
        _degraded("thesis development", "justification heading missing, keeping whole reply")
        result.justification = text
    return result


def parse_text(text: str) -> TextResult:
    return TextResult(text=text or "")


# ============================================================
# COMPATIBILITY
# ============================================================

COMPATIBILITY_SECTIONS = {
    "fully": ("Полностью совместимые элементы", "Fully compatible elements"),
    "potentially": ("Потенциально совместимые элементы", "Potentially compatible elements"),
    "incompatible": (
        "Принципиально несовместимые элементы",
        "Fundamentally incompatible elements",
        "Incompatible elements",
    ),
}
STRATEGIES_SECTION = ("Возможные стратегии синтеза", "Possible synthesis strategies", "Synthesis strategies")

EXPLANATION_LABELS = {
    "fully": ("Причина совместимости", "Reason of compatibility", "Reason for compatibility"),
    "potentially": ("Условия совместимости", "Conditions of compatibility", "Conditions for compatibility"),
    "incompatible": ("Причина несовместимости", "Reason of incompatibility", "Reason for incompatibility"),
}

STRATEGY_LABELS = {
    "description": ("Описание", "Description"),
    "benefits": ("Преимущества", "Benefits"),
    "limitations": ("Ограничения", "Limitations"),
    "recommended": ("Рекомендуется", "Recommended"),
}

_CONNECTION_HINTS = ("связь", "отношение", "connection", "relation")


def _element_type(name: str, body: str) -> str:
    # case-sensitive: a capitalised "Отношение ко времени" names a category
    if "->" in name or any(hint in body for hint in _CONNECTION_HINTS):
        return "connection"
    return "category"


def extract_compatibility_elements(section: str, kind: str) -> List[CompatibilityElement]:
    elements = []
    for name, body in headed_blocks(section, 3):
        explanation = text_after_label(body, EXPLANATION_LABELS[kind])
        elements.append(
            CompatibilityElement(
                element_type=_element_type(name, body),
                name=name,
                description=body,
                compatibility_explanation=explanation if explanation is not None else body,
            )
        )
    return elements


def extract_strategies(section: str) -> List[SynthesisStrategy]:
    strategies = []
    for name, body in headed_blocks(section, 3):
        fields = labeled_fields(body, STRATEGY_LABELS)
        strategies.append(
            SynthesisStrategy(
                strategy_name=name,
                description=fields.get("description", ""),
                benefits=bullets(fields.get("benefits")),
                limitations=bullets(fields.get("limitations")),
                recommended=fields.get("recommended", "").strip().casefold() == AFFIRMATIVE,
            )
        )
    return strategies


def _compatibility_from_json(data: dict, text: str) -> CompatibilityAnalysis:
    def elements(key: str) -> List[CompatibilityElement]:
        out = []
        for item in data.get(key) or []:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            element_type = item.get("element_type")
            if element_type not in ("category", "connection"):
                element_type = _element_type(str(item["name"]), str(item.get("description", "")))
            out.append(
                CompatibilityElement(
                    element_type=element_type,
                    name=str(item["name"]),
                    description=str(item.get("description", "")),
                    compatibility_explanation=str(item.get("compatibility_explanation", "")),
                )
            )
        return out

    strategies = []
    for item in data.get("synthesis_strategies") or []:
        if not isinstance(item, dict) or not item.get("strategy_name"):
            continue
        recommended = item.get("recommended", False)
        if isinstance(recommended, str):
            recommended = recommended.strip().casefold() == AFFIRMATIVE
        strategies.append(
            SynthesisStrategy(
                strategy_name=str(item["strategy_name"]),
                description=str(item.get("description", "")),
                benefits=_str_list(item.get("benefits")),
                limitations=_str_list(item.get("limitations")),
                recommended=recommended is True,
            )
        )

    return CompatibilityAnalysis(
        fully_compatible=elements("fully_compatible"),
        potentially_compatible=elements("potentially_compatible"),
        incompatible=elements("incompatible"),
        synthesis_strategies=strategies,
        raw_text=text,
    )


def parse_compatibility(text: str) -> CompatibilityAnalysis:
    text = text or ""

    data = extract_json_block(text)
    if any(k in data for k in ("fully_compatible", "potentially_compatible", "incompatible")):
        return _compatibility_from_json(data, text)

    result = CompatibilityAnalysis(raw_text=text)
    found_any = False

    for kind, aliases in COMPATIBILITY_SECTIONS.items():
        section = find_section(text, aliases)
        if section is None:
            continue
        found_any = True
        elements = extract_compatibility_elements(section, kind)
        if kind == "fully":
            result.fully_compatible = elements
        elif kind == "potentially":
            result.potentially_compatible = elements
        else:
            result.incompatible = elements

    strategies = find_section(text, STRATEGIES_SECTION)
    if strategies is not None:
        found_any = True
        result.synthesis_strategies = extract_strategies(strategies)

    if not found_any:
        _degraded("compatibility", "no known section headings")
    return result


# ============================================================
# SYNTHESIS
# ============================================================

SYNTHESIS_TITLE = ("Синтезированная концепция", "Synthesized concept")
SYNTHESIS_DESCRIPTION = ("Описание", "Description")
SYNTHESIS_CATEGORIES = ("Категории", "Categories")
SYNTHESIS_CONNECTIONS = ("Связи", "Connections")
ORIGIN_LABEL = ("Происхождение", "Origin")

# `<-` is read as "directed" and the endpoints are NOT swapped, so the
# reversed direction is lost. Kept for compatibility with stored syntheses;
# see DESIGN.md before changing it.
ARROW_DIRECTIONS = {
    "->": "directed",
    "<->": "bidirectional",
    "<-": "directed",
}

_CONNECTION_LINE = re.compile(
    r"^(?P<source>.+?)\s+(?P<arrow><->|->|<-)\s+(?P<target>.+?)\s+\((?P<type>[^()]+)\)"
    r"(?:\s*:\s*(?P<description>.*))?$"
)


def _parse_draft_categories(section: str) -> List[DraftCategory]:
    categories = []
    for name, body in headed_blocks(section, 3):
        m = _label_pattern(ORIGIN_LABEL).search(body)
        if m:
            definition = body[:m.start()].strip()
            origin = body[m.end():].strip()
        else:
            definition, origin = body, ""
        categories.append(DraftCategory(name=name, definition=definition, origin_note=origin))
    return categories


def _parse_draft_connections(section: str) -> List[DraftConnection]:
    connections = []
    for item in bullets(section):
        lines = item.split("\n")
        m = _CONNECTION_LINE.match(lines[0].strip())
        if not m:
            logger.debug("[Parser] synthesis: skipping connection line %r", lines[0])
            continue
        origin = text_after_label("\n".join(lines[1:]), ORIGIN_LABEL) or ""
        connections.append(
            DraftConnection(
                source_category_name=m.group("source").strip(),
                target_category_name=m.group("target").strip(),
                connection_type=m.group("type").strip(),
                direction=ARROW_DIRECTIONS[m.group("arrow")],
                description=(m.group("description") or "").strip(),
                origin_note=origin,
            )
        )
    return connections


def parse_synthesis(text: str, fallback_name: str = "") -> SynthesisDraft:
    """
    Expected shape:

        # Синтезированная концепция: <name>
        ## Описание
        ## Категории
        ### <name>
        <definition>
        Происхождение: <origin note>
        ## Связи
        - <source> -> <target> (<type>): <description>
          Происхождение: <origin note>
    """
    text = text or ""

    title = find_section(text, SYNTHESIS_TITLE, level=1)
    name = title.split("\n", 1)[0].strip() if title else ""
    description = find_section(text, SYNTHESIS_DESCRIPTION)
    categories_section = find_section(text, SYNTHESIS_CATEGORIES)
    connections_section = find_section(text, SYNTHESIS_CONNECTIONS)

    categories = _parse_draft_categories(categories_section) if categories_section else []
    connections = _parse_draft_connections(connections_section) if connections_section else []

    if not name:
        name = fallback_name
    if description is None:
        description = ""
        if not title and not categories and not connections:
            _degraded("synthesis", "no recognizable structure, keeping whole reply")
            description = text

    return SynthesisDraft(
        name=name,
        description=description,
        categories=categories,
        connections=connections,
    )


def materialize_synthesis(draft: SynthesisDraft) -> Tuple[List[Category], List[Connection]]:
    """
    Give draft entities temporary ids and resolve connection endpoints by
    exact name inside the draft. Unresolved endpoints stay "" and the
    caller must filter such connections out.
    """
    categories = [
        Category(
            category_id=f"new_category_{idx}",
            name=cat.name,
            definition=cat.definition,
            source=cat.origin_note or None,
        )
        for idx, cat in enumerate(draft.categories)
    ]
    by_name = {}
    for cat in categories:
        by_name.setdefault(cat.name, cat.category_id)

    connections = [
        Connection(
            connection_id=f"new_connection_{idx}",
            source_category_id=by_name.get(conn.source_category_name, ""),
            target_category_id=by_name.get(conn.target_category_name, ""),
            connection_type=conn.connection_type,
            direction=conn.direction,
            description=conn.description,
        )
        for idx, conn in enumerate(draft.connections)
    ]
    return categories, connections


# ============================================================
# CRITICAL ANALYSIS
# ============================================================

CRITICAL_DIMENSIONS = {
    "internal_consistency": (
        ("Внутренняя согласованность", "Internal consistency"),
        {"issues": ("Проблемы", "Issues")},
    ),
    "philosophical_novelty": (
        ("Философская новизна", "Philosophical novelty"),
        {"novel_elements": ("Новые элементы", "Novel elements")},
    ),
    "preservation_of_value": (
        ("Сохранение ценных аспектов", "Preservation of value"),
        {
            "preserved_elements": ("Сохраненные элементы", "Сохранённые элементы", "Preserved elements"),
            "lost_elements": ("Утраченные элементы", "Lost elements"),
        },
    ),
    "contradiction_resolution": (
        ("Разрешение противоречий", "Contradiction resolution"),
        {
            "resolved_contradictions": ("Разрешенные противоречия", "Разрешённые противоречия", "Resolved contradictions"),
            "remaining_contradictions": ("Оставшиеся противоречия", "Remaining contradictions"),
        },
    ),
}
POTENTIAL_ISSUES_SECTION = ("Потенциальные проблемы", "Potential issues")
SEVERITY_LABEL = ("Серьезность", "Серьёзность", "Severity")
SOLUTION_LABEL = ("Потенциальное решение", "Potential solution")

_SCORE = re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*/\s*1(?![\d.])[ \t]*\n?")


def _parse_dimension(body: str, labels: Dict[str, Sequence[str]]) -> Optional[DimensionScore]:
    m = _SCORE.match(body)
    if not m:
        return None
    analysis = body[m.end():].strip()
    fields = labeled_fields(analysis, labels)
    return DimensionScore(
        score=float(m.group(1).replace(",", ".")),
        analysis=analysis,
        lists={key: bullets(fields.get(key)) for key in labels},
    )


_LOW_ISSUE = re.compile(r"\b(?:низк|low\b)", re.IGNORECASE)
_HIGH_ISSUE = re.compile(r"\b(?:высок|high\b)", re.IGNORECASE)


def _issue_severity(text: str) -> str:
    # word starts only, so "невысокая" stays medium
    if _LOW_ISSUE.search(text):
        return "low"
    if _HIGH_ISSUE.search(text):
        return "high"
    return "medium"


def _parse_potential_issues(section: str) -> List[PotentialIssue]:
    issues = []
    severity_re = re.compile(
        _label_pattern(SEVERITY_LABEL).pattern + r"(?P<value>[^\n]*)\n?", re.IGNORECASE
    )
    for title, body in headed_blocks(section, 3):
        m = severity_re.search(body)
        if not m:
            _degraded("critical analysis", f"issue '{title}' has no severity line")
            continue
        rest = body[m.end():].strip()

        solution_match = _label_pattern(SOLUTION_LABEL).search(rest)
        if solution_match:
            description = rest[:solution_match.start()].strip()
            solution = rest[solution_match.end():].strip() or None
        else:
            description, solution = rest, None

        issues.append(
            PotentialIssue(
                severity=_issue_severity(m.group("value")),
                issue=description or title,
                potential_solution=solution,
            )
        )
    return issues


def _critical_from_json(data: dict, text: str) -> CriticalAnalysis:
    result = CriticalAnalysis(raw_text=text)
    for field_name, (_, labels) in CRITICAL_DIMENSIONS.items():
        item = data.get(field_name)
        if not isinstance(item, dict):
            continue
        try:
            score = float(item.get("score", 0))
        except (TypeError, ValueError):
            score = 0.0
        setattr(
            result,
            field_name,
            DimensionScore(
                score=score,
                analysis=str(item.get("analysis", "")),
                lists={key: _str_list(item.get(key)) for key in labels},
            ),
        )
    for item in data.get("potential_issues") or []:
        if isinstance(item, dict) and item.get("issue"):
            severity = item.get("severity")
            if severity not in ("low", "medium", "high"):
                severity = _issue_severity(str(severity or ""))
            result.potential_issues.append(
                PotentialIssue(
                    severity=severity,
                    issue=str(item["issue"]),
                    potential_solution=item.get("potential_solution"),
                )
            )
    return result


def parse_critical_analysis(text: str) -> CriticalAnalysis:
    text = text or ""

    data = extract_json_block(text)
    if any(k in data for k in CRITICAL_DIMENSIONS):
        return _critical_from_json(data, text)

    result = CriticalAnalysis(raw_text=text)
    for field_name, (aliases, labels) in CRITICAL_DIMENSIONS.items():
        body = find_section(text, aliases)
        if body is None:
            _degraded("critical analysis", f"missing section {aliases[0]!r}")
            continue
        dimension = _parse_dimension(body, labels)
        if dimension is None:
            _degraded("critical analysis", f"no 'score / 1' in section {aliases[0]!r}")
            continue
        setattr(result, field_name, dimension)

    issues_section = find_section(text, POTENTIAL_ISSUES_SECTION)
    if issues_section is not None:
        result.potential_issues = _parse_potential_issues(issues_section)
    return result
