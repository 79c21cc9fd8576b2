from policy.engine import (CasbinDecisionEngine, DecisionEngine,
                           DecisionEngineError, EngineAccessDenied,
                           build_engine,)
from policy.filters import PolicyFilter, TupleField, translate
from policy.schemas import (FilterRequest, PolicyBatch, PolicyTuple,
                            validate_batch, validate_filter, validate_tuple,)
from policy.service import PolicyService

__all__ = ['CasbinDecisionEngine', 'DecisionEngine', 'DecisionEngineError',
           'EngineAccessDenied', 'FilterRequest', 'PolicyBatch', 'PolicyFilter',
           'PolicyService', 'PolicyTuple', 'TupleField', 'build_engine',
           'translate', 'validate_batch', 'validate_filter', 'validate_tuple']
