# main.py
"""
Main entry point for the 2D fluid simulation.

This script orchestrates the entire simulation lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Sets up the particle store, simulation pipeline and window.
4. Runs the main loop: poll pointer, step, draw, count frames.
5. Handles clean shutdown and logs a performance profile.
"""
import logging
from utils import FrameCounter, setup_logging, load_config
import numpy as np
import cProfile
import pstats
import io

def main():
    """
    The main function to run the simulation.
    """
    # Load configuration from the JSON file first.
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config('config.json')
    except Exception as e:
        print(f"FATAL: Could not load config.json. Error: {e}")
        return

    setup_logging(config)

    logging.info("--- Fluid Simulation Starting ---")

    sim_params = config.get('simulation_parameters', {})
    interaction_params = config.get('interaction', {})
    contour_params = config.get('contour', {})
    run_params = config.get('run_control', {})
    vis_params = config.get('visualization', {})

    from particle import BoundingBox, ParticleStore
    from simulation import DEFAULT_BOUNDING_BOX, Simulation
    from visualization import Visualizer

    # --- Component Initialization ---
    bounds = BoundingBox.from_sequence(sim_params.get('bounding_box', DEFAULT_BOUNDING_BOX))
    particles = ParticleStore(sim_params, bounds)
    sim = Simulation(particles, sim_params, interaction_params, contour_params)
    visualizer = Visualizer(
        bounds,
        render_mode=vis_params.get('render_mode', 'contour'),
        color_mode=vis_params.get('particle_color_mode', 'velocity')
    )
    frame_counter = FrameCounter()

    profiler = cProfile.Profile()

    log_throttle = run_params.get('log_throttle_steps', 100)
    # 0 runs until the window is closed.
    max_steps = run_params.get('max_steps', 0)

    running = True
    step_num = 0

    profiler.enable()
    while running:
        running, pointer = visualizer.poll()
        if not running:
            break

        sim.step(pointer)
        step_num += 1

        fps = frame_counter.tick()
        visualizer.draw(sim, fps)

        # Hot loops must throttle logs
        if step_num % log_throttle == 0:
            logging.info(
                f"Simulation step {step_num} | {particles.particle_count} particles | "
                f"{fps:.1f} FPS"
            )
            if particles.particle_count:
                avg_speed = np.mean(particles.speeds())
                logging.debug(f"Step {step_num} | Average Speed: {avg_speed:.4f}")

        if max_steps and step_num >= max_steps:
            logging.info(f"Reached max_steps ({max_steps}). Stopping simulation.")
            running = False
    profiler.disable()

    visualizer.close()
    logging.info("Simulation loop finished.")

    logging.info("--- Performance Profile ---")
    s = io.StringIO()
    # Sort by cumulative time spent in the function
    stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
    stats.print_stats(20)
    logging.info(f"\n{s.getvalue()}")

    logging.info("--- Fluid Simulation Shutting Down ---")


if __name__ == "__main__":
    main()
