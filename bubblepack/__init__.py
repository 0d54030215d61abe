from bubblepack.data import Bounds, PositionTable, Viewport, ViewMode, WeightedCircle, flatten, load_records
from bubblepack.grid import Cell, GridLayout, layout_grid
from bubblepack.layout import BubbleLayout, FootprintEstimate, LayoutResult
from bubblepack.legend import LegendEntry, legend_entries
from bubblepack.natural_breaks import classify, natural_breaks
from bubblepack.overlap import relax
from bubblepack.packer import pack_all, pack_tight
from bubblepack.radius import RadiusModel
from bubblepack.simulation import ForceSimulation
from bubblepack.spiral import place_greedy
