"""moran_evo: Spatial Moran-process simulator with copy-number evolution.

A fixed-size, individual-based model of cellular evolution:
  - Continuous-time Moran cycle of random death and fitness-weighted division
  - Point (well-mixed), linear and lattice population structures
  - Scalar, A/B and segment copy-number genotypes
  - Copy-number alterations (gain/loss per genome segment) with
    whole-genome doubling as a mutually exclusive event
  - Multi-trial driver with CSV reporting and YAML configuration
"""

__version__ = "0.1.0"
