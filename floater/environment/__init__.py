from .providers import (
    FieldProvider,
    SamplingToken,
    NullFieldProvider,
    NULL_PROVIDER,
    UniformFieldProvider,
    DeferredFieldProvider,
    create_field_provider_from_config,
)
from .waves import WaveComponent, WaveFieldProvider
from .flow import FlowSampler, CurrentConfig, UniformFlowSampler, create_flow_sampler_from_config
from .context import WaterContext, create_water_context_from_config
