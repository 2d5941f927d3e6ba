# src/ids/lifecycle.py
from transitions.extensions import LockedMachine

class PipelineLifecycle:
    states = ['idle', 'running', 'draining', 'stopped']

    def __init__(self):
        self.machine = LockedMachine(model=self, states=PipelineLifecycle.states, initial='idle')
        self.machine.add_transition('start', 'idle', 'running')
        self.machine.add_transition('drain', 'running', 'draining')
        self.machine.add_transition('finish', 'draining', 'stopped')
        # a pipeline that never started can still be shut down
        self.machine.add_transition('finish', 'idle', 'stopped')

    @property
    def accepting(self):
        return self.state == 'running'
