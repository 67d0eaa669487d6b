# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services for EduRecords.

Each subpackage owns one part of the academic year lifecycle:
- attendance: attendance frequency per teaching unit
- grading: final averages per institution type
- consolidation: frozen historical records at year close
- academic_year: year creation and the ACTIVE -> CLOSED transition
- reopening: scoped, time-boxed exceptions to the closed-year freeze
- mutation_gate: enforcement of the freeze on every academic write
- progression: class-level progression rules for enrollments
- records: gated writes of raw academic facts
"""
