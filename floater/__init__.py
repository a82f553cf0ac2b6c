from .core.types import (
    ForceMode,
    ProbePoint,
    Rect,
    ControlInput,
    AppliedForce,
    AppliedTorque,
    TickResult,
    BodyParams,
    SimulationConfig,
    InitialPose,
)
from .core.exceptions import (
    FloaterError,
    SchemaError,
    ConfigError,
    MissingDependency,
    SamplingTokenError,
    NumericalInstability,
)
from .core.geometry import Pose, ProbeSet, compute_local_rect, compute_world_region
from .environment import (
    NullFieldProvider,
    UniformFieldProvider,
    WaveFieldProvider,
    DeferredFieldProvider,
    UniformFlowSampler,
    WaterContext,
)
from .sim.simulator import BuoyancySimulator
from .models.rigid_body import RigidBody
