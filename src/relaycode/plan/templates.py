"""Starter content for plan documents."""

from datetime import datetime


PROPOSAL_TEMPLATE = """# {summary}

## Why

*What problem does this solve? Who is affected?*

## What Changes

- *(list each change; mark breaking ones with **BREAKING**)*

## Impact

### Affected Specs

- (None)

### Affected Code

- (None)
"""

DESIGN_TEMPLATE = """# Design

## Context

*Background and constraints discovered while reading the code.*

## Goals

-

## Non-Goals

-

## Decisions

*For each decision: what, why, and the alternatives considered.*

## Risks & Trade-offs

-

## Migration Plan

### Steps

1.

### Rollback

-

## Open Questions

-
"""

SPEC_TEMPLATE = """# Spec: {summary}

## ADDED Requirements

### Requirement name

The system SHALL ...

#### Scenarios

- **WHEN** ... **THEN** ...

## MODIFIED Requirements

## REMOVED Requirements
"""

TASKS_TEMPLATE = """# Tasks

## 1. Implementation

- [ ] 1.1

## 2. Testing

- [ ] 2.1

## 3. Documentation

- [ ] 3.1
"""

PLAN_TEMPLATE = """---
planId: {slug}
created: {created}
phase: understanding
---

# Plan: {slug}

## Overview

*Summary of the request and the chosen approach.*

## Design Summary

See design.md.

## Spec Summary

See spec.md.

## Tasks

See tasks.md.
"""


def render_documents(slug: str, summary: str = None, created: str = None) -> dict[str, str]:
    """Render the initial document set for a new plan, keyed by file name."""
    summary = summary or f"Plan {slug}"
    created = created or datetime.now().isoformat(timespec="seconds")
    return {
        "proposal.md": PROPOSAL_TEMPLATE.format(summary=summary),
        "design.md": DESIGN_TEMPLATE,
        "spec.md": SPEC_TEMPLATE.format(summary=summary),
        "tasks.md": TASKS_TEMPLATE,
        "plan.md": PLAN_TEMPLATE.format(slug=slug, created=created),
    }
