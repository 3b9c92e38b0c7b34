"""Step tick jitter benchmark.

Runs the step clock for a number of 16-step cycles and measures how late each
tick fires relative to its ideal time.

Usage:
    python benchmarks/tick_jitter.py [--bpm BPM] [--quantization Q] [--cycles N]
                                     [--no-spin-wait] [--compare]

Options:
    --bpm BPM           Tempo in BPM (default: 120)
    --quantization Q    quarter, eighth or sixteenth (default: sixteenth)
    --cycles N          Number of 16-step cycles to measure (default: 16)
    --no-spin-wait      Disable hybrid sleep+spin (use pure asyncio.sleep)
    --compare           Run both modes and print a side-by-side comparison
"""

import argparse
import asyncio
import logging
import statistics

logging.basicConfig(level=logging.ERROR)

import beatpad.clock
import beatpad.constants
import beatpad.transport


def _run_benchmark (
	bpm: float,
	quantization: beatpad.transport.Quantization,
	cycles: int,
	spin_wait: bool,
) -> list:

	"""Tick for *cycles* cycles and return per-tick lateness (seconds)."""

	jitter_log: list = []
	steps = cycles * beatpad.constants.NUM_STEPS
	interval = beatpad.transport.tick_interval_ms(beatpad.transport.clamp_tempo(bpm), quantization) / 1000.0

	async def _run () -> None:

		driver = beatpad.clock.AsyncioTickDriver(spin_wait=spin_wait, _jitter_log=jitter_log)
		done = asyncio.Event()

		def _on_tick () -> None:
			if len(jitter_log) >= steps:
				done.set()

		handle = driver.schedule(interval, _on_tick)

		try:
			await asyncio.wait_for(done.wait(), timeout=interval * steps + 2.0)
		except asyncio.TimeoutError:
			pass

		handle.cancel()

	asyncio.run(_run())

	return jitter_log[:steps]


def _print_report (
	jitter: list,
	bpm: float,
	quantization: beatpad.transport.Quantization,
	spin_wait: bool,
	label: str = "",
) -> None:

	if not jitter:
		print("No jitter data collected.")
		return

	ms = [j * 1000 for j in jitter]

	mean_ms   = statistics.mean(ms)
	median_ms = statistics.median(ms)
	stdev_ms  = statistics.stdev(ms) if len(ms) > 1 else 0.0
	p95_ms    = sorted(ms)[int(len(ms) * 0.95)]
	max_ms    = max(ms)
	drift_ms  = ms[-1] - ms[0] if len(ms) > 1 else 0.0

	interval_ms = beatpad.transport.tick_interval_ms(beatpad.transport.clamp_tempo(bpm), quantization)

	mode = "spin-wait ON" if spin_wait else "spin-wait OFF"
	header = f" {label}" if label else ""

	print(f"\nTick Jitter Benchmark{header}: {len(ms)} steps at {bpm:.0f} BPM, {quantization.name.lower()} ({mode})")
	print(f"{'-' * 62}")
	print(f"  Step interval   : {interval_ms:.3f} ms")
	print(f"  Mean jitter     : {mean_ms:>8.3f} ms")
	print(f"  Median jitter   : {median_ms:>8.3f} ms")
	print(f"  Std deviation   : {stdev_ms:>8.3f} ms")
	print(f"  P95 jitter      : {p95_ms:>8.3f} ms")
	print(f"  Max jitter      : {max_ms:>8.3f} ms")
	print(f"  Clock drift     : {drift_ms:>+8.3f} ms  (non-accumulating)")
	print(f"{'-' * 62}")

	# A 16th at 240 BPM is 62.5 ms; anything under ~2 ms is inaudible as a flam.
	if mean_ms < 0.5:
		rating = "Very good  (sub-500 us)"
	elif mean_ms < 2.0:
		rating = "Good       (< 2 ms)"
	elif mean_ms < 5.0:
		rating = "Fair       (2-5 ms, may be audible on fast patterns)"
	else:
		rating = "Poor       (> 5 ms)"

	print(f"  Rating          : {rating}")
	print()


def main () -> None:

	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--bpm",          type=float, default=120,         help="Tempo in BPM (default: 120)")
	parser.add_argument("--quantization", type=str,   default="sixteenth", help="Step length (default: sixteenth)")
	parser.add_argument("--cycles",       type=int,   default=16,          help="16-step cycles to measure (default: 16)")
	parser.add_argument("--no-spin-wait", action="store_true",             help="Disable spin-wait (use pure asyncio.sleep)")
	parser.add_argument("--compare",      action="store_true",             help="Run both modes and compare")
	args = parser.parse_args()

	quantization = beatpad.transport.Quantization.parse(args.quantization)

	if args.compare:
		print("\nRunning with spin-wait ON ...")
		spin_jitter = _run_benchmark(args.bpm, quantization, args.cycles, spin_wait=True)
		_print_report(spin_jitter, args.bpm, quantization, spin_wait=True, label="[spin-wait ON]")

		print("Running with spin-wait OFF ...")
		pure_jitter = _run_benchmark(args.bpm, quantization, args.cycles, spin_wait=False)
		_print_report(pure_jitter, args.bpm, quantization, spin_wait=False, label="[spin-wait OFF]")

	else:
		spin = not args.no_spin_wait
		jitter = _run_benchmark(args.bpm, quantization, args.cycles, spin_wait=spin)
		_print_report(jitter, args.bpm, quantization, spin_wait=spin)


if __name__ == "__main__":
	main()
