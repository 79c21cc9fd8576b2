from loadtest.client import GatewayClient
from loadtest.generator import ACTIONS, PolicyGenerator
from loadtest.stress_test import (HarnessReport, Operation, StressTestConfig,
                                  run_stress_test,)

__all__ = ['ACTIONS', 'GatewayClient', 'HarnessReport', 'Operation',
           'PolicyGenerator', 'StressTestConfig', 'run_stress_test']
