# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Closed-year mutation gate."""

from edurecords.domains.mutation_gate.service import GateDecision, MutationGate, MutationRequest

__all__ = ["GateDecision", "MutationGate", "MutationRequest"]
