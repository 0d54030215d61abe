from pathlib import Path
from typing import Optional, Tuple

import numpy as np
from tqdm import tqdm
import typer

from bubblepack import BubbleLayout, ViewMode, load_records
from bubblepack.plotter import plot_layout
from bubblepack.utils import time_function_call


def main(
        records_path: Path,
        output_directory: Path,
        mode: ViewMode = ViewMode.all,
        viewport: Tuple[float, float] = (960.0, 640.0),
        footprint: str = 'tight',
        max_inner_height: Optional[float] = None,
        animate: bool = False,
        max_ticks: int = 1000,
        plot: bool = True,
        legend_classes: int = 3,
        random_state: int = 0,
        verbose: bool = False
):
    output_directory.mkdir(parents=True, exist_ok=True)
    name = f'{records_path.stem}_{mode.value}'
    out_positions_path = output_directory / f'{name}.csv'
    out_plot_path = output_directory / f'{name}.png'

    print(f'Loading {records_path}...')
    engine = BubbleLayout.from_records(
        load_records(records_path),
        footprint=footprint,
        max_inner_height=max_inner_height,
        random_state=random_state,
        verbose=verbose
    )

    if mode != ViewMode.all:
        # The coefficient of the space-filling pack fixes the radii of every later view.
        engine.compute_layout(ViewMode.all, viewport)
    result, time_elapsed = time_function_call(engine.compute_layout, mode, viewport)
    print(f'Layout time: {time_elapsed}, approximate placements: {len(result.approximate_ids)}')

    frame = result.to_frame()
    positions = None
    if animate and mode != ViewMode.all:
        print('Running the smoothing simulation...')
        for positions in tqdm(engine.animate(max_ticks), total=max_ticks):
            pass
        if positions is not None:
            frame['live_x'] = np.asarray(positions)[:, 0]
            frame['live_y'] = np.asarray(positions)[:, 1]
    frame.to_csv(out_positions_path)
    print(f'Exported positions to {out_positions_path}.')

    if plot:
        print('Exporting layout plot...')
        plot_layout(
            result,
            positions,
            legend=engine.legend(legend_classes),
            output_path=out_plot_path
        )


if __name__ == '__main__':
    typer.run(main)
