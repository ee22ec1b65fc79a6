"""
Operators whose side effects depend on the value of a flag argument.

Normalization operators only write ``running_mean``/``running_var`` when a
training flag is set, and dropout only draws random numbers when ``train``
is set. Their schemas cannot express this, so they are matched here by
structural schema equality.
"""

from __future__ import annotations

from typing import Optional, Tuple

from ..schema.model import FunctionSchema
from ..schema.parser import parse_schema


TRAINING_FLAG_NAMES = ("training", "train", "use_input_stats")
RUNNING_STAT_NAMES = ("running_mean", "running_var")

TRAINING_OP_SIGNATURES = (
    "aten::batch_norm(Tensor input, Tensor? weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool training, float momentum, float eps, bool cudnn_enabled) -> Tensor",
    "aten::instance_norm(Tensor input, Tensor? weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool use_input_stats, float momentum, float eps, bool cudnn_enabled) -> Tensor",
    "aten::_batch_norm_impl_index(Tensor input, Tensor? weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool training, float momentum, float eps, bool cudnn_enabled) "
    "-> (Tensor, Tensor, Tensor, Tensor, int)",
    "aten::cudnn_batch_norm(Tensor input, Tensor weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool training, float exponential_average_factor, float epsilon) "
    "-> (Tensor, Tensor, Tensor, Tensor)",
    "aten::miopen_batch_norm(Tensor input, Tensor weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool training, float exponential_average_factor, float epsilon) "
    "-> (Tensor, Tensor, Tensor)",
    "aten::native_batch_norm(Tensor input, Tensor? weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool training, float momentum, float eps) -> (Tensor, Tensor, Tensor)",
    "aten::native_batch_norm.out(Tensor input, Tensor? weight, Tensor? bias, Tensor? running_mean, "
    "Tensor? running_var, bool training, float momentum, float eps, *, Tensor(a!) out, "
    "Tensor(b!) save_mean, Tensor(c!) save_invstd) -> (Tensor(a!), Tensor(b!), Tensor(c!))",
)

DROPOUT_SIGNATURE = "aten::dropout(Tensor input, float p, bool train) -> Tensor"


_training_ops: Optional[Tuple[FunctionSchema, ...]] = None
_dropout_schema: Optional[FunctionSchema] = None


def get_training_ops() -> Tuple[FunctionSchema, ...]:
    """Parsed training op schemas, built on first use."""
    global _training_ops
    if _training_ops is None:
        _training_ops = tuple(parse_schema(s) for s in TRAINING_OP_SIGNATURES)
    return _training_ops


def get_dropout_schema() -> FunctionSchema:
    global _dropout_schema
    if _dropout_schema is None:
        _dropout_schema = parse_schema(DROPOUT_SIGNATURE)
    return _dropout_schema
